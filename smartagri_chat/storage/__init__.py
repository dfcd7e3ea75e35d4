from .filesystem import FilesystemStorage
from .memory import InMemoryStorage
from .sqlite import SQLiteStorage

__all__ = ["FilesystemStorage", "InMemoryStorage", "SQLiteStorage"]

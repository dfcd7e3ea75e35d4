"""Tests for record shapes, fail-closed loading and version handling."""

import json

import pytest

from smartagri_chat.core.schema import (
    SCHEMA_VERSION,
    SchemaError,
    create_new_database,
    database_to_dict,
    dump_database,
    load_database,
    parse_database,
    persistent_context_from_dict,
)
from smartagri_chat.types import ConversationTurn, DatabaseSettings, Session, TurnMetadata


def make_session(session_id: str = "session_1_abc", turns: int = 1) -> Session:
    data = [
        ConversationTurn(
            id=f"conv_{i}",
            timestamp=1000 + i * 10,
            user_message=f"question {i}",
            ai_response=f"answer {i}",
        )
        for i in range(turns)
    ]
    return Session(
        session_id=session_id,
        start_time=1000,
        last_activity=1000 + turns * 10,
        message_count=2 * turns,
        turns=data,
    )


class TestLoadDatabase:
    def test_missing_blob_gives_fresh_database(self):
        db = load_database(None)
        assert db.version == SCHEMA_VERSION
        assert db.sessions == {}
        assert db.current_session is None

    def test_corrupt_json_gives_fresh_database(self):
        db = load_database("{not json")
        assert db.sessions == {}

    def test_wrong_shape_gives_fresh_database(self):
        db = load_database(json.dumps({"version": SCHEMA_VERSION, "sessions": []}))
        assert db.sessions == {}

    def test_version_mismatch_discards_data(self):
        old = database_to_dict(create_new_database())
        old["version"] = "0.9.0"
        old["sessions"] = {"session_1_abc": {"sessionId": "session_1_abc"}}
        db = load_database(json.dumps(old))
        assert db.version == SCHEMA_VERSION
        assert db.sessions == {}

    def test_fresh_database_uses_given_settings(self):
        db = load_database(None, DatabaseSettings(max_sessions=7))
        assert db.settings.max_sessions == 7

    def test_round_trip(self):
        db = create_new_database()
        session = make_session(turns=2)
        db.sessions[session.session_id] = session
        db.current_session = session.session_id
        loaded = load_database(dump_database(db))
        assert loaded == db

    def test_invalid_settings_give_fresh_database(self):
        db = create_new_database()
        db.sessions["session_1_abc"] = make_session()
        stored = database_to_dict(db)
        stored["settings"]["maxSessions"] = 0
        db = load_database(json.dumps(stored))
        assert db.sessions == {}
        assert db.settings.max_sessions == 50


class TestWireFormat:
    def test_camel_case_keys(self):
        db = create_new_database()
        db.sessions["session_1_abc"] = make_session()
        raw = json.loads(dump_database(db))
        assert set(raw) == {"version", "sessions", "currentSession", "settings"}
        assert raw["settings"] == {
            "maxSessions": 50,
            "compressionEnabled": True,
            "maxContextMessages": 20,
            "autoCleanupDays": 30,
        }
        session = raw["sessions"]["session_1_abc"]
        assert session["messageCount"] == 2
        assert session["data"][0]["userMessage"] == "question 0"
        assert "imageData" not in session["data"][0]

    def test_turn_metadata_and_image(self):
        db = create_new_database()
        session = make_session(turns=0)
        session.turns.append(
            ConversationTurn(
                id="conv_x",
                timestamp=5,
                user_message="leaf photo",
                ai_response="rust",
                image_data="data:image/png;base64,AAAA",
                metadata=TurnMetadata(tokens=42, response_time=800, model="gemini"),
            )
        )
        session.message_count = 2
        db.sessions[session.session_id] = session
        raw = json.loads(dump_database(db))
        turn = raw["sessions"][session.session_id]["data"][0]
        assert turn["imageData"] == "data:image/png;base64,AAAA"
        assert turn["metadata"] == {"tokens": 42, "responseTime": 800, "model": "gemini"}
        assert parse_database(dump_database(db)) == db


class TestParseDatabase:
    def test_rejects_invalid_json(self):
        with pytest.raises(SchemaError):
            parse_database("nope")

    def test_rejects_non_object(self):
        with pytest.raises(SchemaError):
            parse_database("[]")

    def test_rejects_mismatched_session_key(self):
        db = create_new_database()
        db.sessions["other_key"] = make_session("session_1_abc")
        with pytest.raises(SchemaError):
            parse_database(dump_database(db))

    def test_rejects_bool_where_int_expected(self):
        raw = database_to_dict(create_new_database())
        raw["sessions"] = {"s": {
            "sessionId": "s", "startTime": True, "lastActivity": 1,
            "messageCount": 0, "data": [],
        }}
        with pytest.raises(SchemaError):
            parse_database(json.dumps(raw))

    def test_repairs_message_count(self):
        db = create_new_database()
        session = make_session(turns=3)
        session.message_count = 1
        db.sessions[session.session_id] = session
        parsed = parse_database(dump_database(db))
        assert parsed.sessions[session.session_id].message_count == 6

    def test_missing_settings_use_defaults(self):
        raw = database_to_dict(create_new_database())
        del raw["settings"]
        parsed = parse_database(json.dumps(raw), DatabaseSettings(max_context_messages=6))
        assert parsed.settings.max_context_messages == 6

    @pytest.mark.parametrize(
        "settings",
        [{"maxSessions": 0}, {"autoCleanupDays": 0}, {"maxContextMessages": -2}],
    )
    def test_rejects_out_of_range_settings(self, settings):
        raw = database_to_dict(create_new_database())
        raw["settings"].update(settings)
        with pytest.raises(SchemaError, match="invalid settings"):
            parse_database(json.dumps(raw))


class TestPersistentContextRecord:
    def test_parse(self):
        ctx = persistent_context_from_dict({
            "topics": ["soil"],
            "recentConversations": [{"userQuery": "q", "aiSummary": "a", "timestamp": 3}],
            "totalConversations": 1,
            "lastActiveDate": 3,
            "sessionDuration": 0,
            "version": "1.0",
        })
        assert ctx.topics == ["soil"]
        assert ctx.recent_conversations[0].user_query == "q"

    def test_rejects_bad_topics(self):
        with pytest.raises(SchemaError):
            persistent_context_from_dict({"topics": "soil", "recentConversations": [], "totalConversations": 0})

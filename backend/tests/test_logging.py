"""
Tests for logging helpers.
"""

import json
import logging

from companion.core.logging_config import (
    JSONFormatter,
    LoggerAdapter,
    filter_sensitive_data,
    truncate_large_data,
)
from companion.middleware.logging_middleware import _masked_query


class TestSensitiveData:
    def test_masks_nested_keys(self):
        data = {"user": "ada", "auth": {"access_token": "abc", "API_KEY": "k"}, "items": [{"password": "p"}]}
        filtered = filter_sensitive_data(data)
        assert filtered["user"] == "ada"
        assert filtered["auth"] == {"access_token": "***FILTERED***", "API_KEY": "***FILTERED***"}
        assert filtered["items"] == [{"password": "***FILTERED***"}]

    def test_truncate(self):
        assert truncate_large_data("short") == "short"
        assert truncate_large_data("x" * 20, max_length=5).startswith("xxxxx... (truncated")

    def test_websocket_token_masked(self):
        scope = {"query_string": b"token=secret-jwt&debug=1"}
        assert _masked_query(scope) == {"token": "***FILTERED***", "debug": "1"}


class TestJSONFormatter:
    def test_extra_fields_merged_and_filtered(self):
        record = logging.LogRecord("companion.test", logging.INFO, __file__, 1, "hello", None, None)
        record.extra_fields = {"session_id": "s1", "token": "t"}

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "hello"
        assert payload["session_id"] == "s1"
        assert payload["token"] == "***FILTERED***"


class TestLoggerAdapter:
    def test_bind_merges_fields(self):
        adapter = LoggerAdapter(logging.getLogger("companion.test"), {"connection_id": "c1"}).bind(user_id="u1")
        _, kwargs = adapter.process("msg", {"extra": {"extra_fields": {"turn": 2}}})
        assert kwargs["extra"]["extra_fields"] == {"connection_id": "c1", "user_id": "u1", "turn": 2}

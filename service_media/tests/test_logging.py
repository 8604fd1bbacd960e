"""
Tests for shared logging processors.
"""

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.logging import (
    REDACTED,
    add_correlation_context,
    clear_context,
    redact_sensitive,
    service_context,
    set_request_id,
    set_user_context,
)


def test_service_context():
    processor = service_context("media")
    assert processor(None, "info", {"event": "x"})["service"] == "media"


def test_correlation_context():
    set_request_id("req-1")
    set_user_context("user-1")
    try:
        event = add_correlation_context(None, "info", {"event": "x"})
        assert event["request_id"] == "req-1"
        assert event["user_id"] == "user-1"
    finally:
        clear_context()

    assert "request_id" not in add_correlation_context(None, "info", {"event": "x"})


def test_generated_request_id():
    try:
        assert set_request_id()
    finally:
        clear_context()


def test_redact_sensitive():
    event = redact_sensitive(None, "warning", {
        "event": "Token verification failed",
        "Authorization": "Bearer abc",
        "details": {"token": "abc", "kid": "key-1"},
        "reason": "ExpiredSignatureError",
    })

    assert event["Authorization"] == REDACTED
    assert event["details"] == {"token": REDACTED, "kid": "key-1"}
    assert event["reason"] == "ExpiredSignatureError"

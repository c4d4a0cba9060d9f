"""Unit tests for run token signing and verification."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from byterunner.config import get_settings
from byterunner.errors import InvalidToken
from byterunner.runs.tokens import issue_run_token, verify_run_token
from byterunner.time_utils import epoch_ms

NOW = datetime(2026, 3, 2, 15, tzinfo=timezone.utc)


class TestRunTokens:
    def test_roundtrip_returns_server_start(self):
        token, expires_at = issue_run_token("player-1", NOW)
        assert expires_at == NOW + timedelta(seconds=get_settings().run_token_ttl_seconds)
        assert verify_run_token(token, "player-1", NOW + timedelta(minutes=2)) == epoch_ms(NOW)

    def test_wrong_subject(self):
        token, _ = issue_run_token("player-1", NOW)
        with pytest.raises(InvalidToken, match="does not belong"):
            verify_run_token(token, "player-2", NOW)

    def test_expired(self):
        token, expires_at = issue_run_token("player-1", NOW)
        with pytest.raises(InvalidToken, match="expired"):
            verify_run_token(token, "player-1", expires_at)

    def test_tampered_signature(self):
        token, _ = issue_run_token("player-1", NOW)
        forged = jwt.encode(
            jwt.decode(token, options={"verify_signature": False}),
            "some-other-secret",
            algorithm="HS256",
        )
        with pytest.raises(InvalidToken, match="Invalid run token"):
            verify_run_token(forged, "player-1", NOW)

    def test_garbage(self):
        with pytest.raises(InvalidToken):
            verify_run_token("not-a-jwt", "player-1", NOW)

    def test_live_clock_verification(self):
        token, _ = issue_run_token("player-1")
        assert isinstance(verify_run_token(token, "player-1"), int)

"""
Tests for remember-me signing and token derived identifiers.
"""

import jwt
import pytest

from passcode_auth.security import (
    LIVE_CONNECTION_PREFIX,
    anonymise,
    generate_session_token,
    live_connection_id,
)
from passcode_auth.services.tokens import (
    TokenError,
    create_remember_token,
    decode_remember_token,
)

SECRET = "remember-me-secret-for-tests-0123456789"


class TestRememberToken:
    def test_round_trip(self):
        signed = create_remember_token("session-token", validity_days=60, secret=SECRET)

        assert signed != "session-token"
        assert decode_remember_token(signed, secret=SECRET) == "session-token"

    def test_rejects_other_secret(self):
        signed = create_remember_token("session-token", validity_days=60, secret=SECRET)

        with pytest.raises(TokenError, match="Invalid token"):
            decode_remember_token(signed, secret="another-secret-for-tests-0123456789")

    def test_honours_algorithm(self):
        signed = create_remember_token(
            "session-token", validity_days=60, secret=SECRET, algorithm="HS512"
        )

        assert jwt.get_unverified_header(signed)["alg"] == "HS512"
        assert decode_remember_token(signed, secret=SECRET, algorithm="HS512") == "session-token"
        with pytest.raises(TokenError, match="Invalid token"):
            decode_remember_token(signed, secret=SECRET, algorithm="HS256")

    def test_rejects_expired(self):
        signed = create_remember_token("session-token", validity_days=-1, secret=SECRET)

        with pytest.raises(TokenError, match="expired"):
            decode_remember_token(signed, secret=SECRET)

    def test_rejects_other_token_types(self):
        forged = jwt.encode({"sid": "session-token", "type": "access"}, SECRET, algorithm="HS256")

        with pytest.raises(TokenError, match="type"):
            decode_remember_token(forged, secret=SECRET)

    def test_rejects_missing_token(self):
        with pytest.raises(TokenError):
            decode_remember_token("", secret=SECRET)


class TestDerivedIdentifiers:
    def test_live_connection_id_is_deterministic(self):
        token = generate_session_token()

        assert live_connection_id(token) == live_connection_id(token)
        assert live_connection_id(token).startswith(LIVE_CONNECTION_PREFIX)

    def test_live_connection_id_hides_token(self):
        token = generate_session_token()
        derived = live_connection_id(token)

        assert derived != token
        assert token not in derived

    def test_live_connection_id_changes_with_token(self):
        assert live_connection_id(generate_session_token()) != live_connection_id(
            generate_session_token()
        )

    def test_session_tokens_carry_enough_entropy(self):
        tokens = {generate_session_token() for _ in range(50)}

        assert len(tokens) == 50
        # 32 random bytes, url-safe base64 without padding
        assert all(len(token) == 43 for token in tokens)

    def test_anonymise_is_stable_and_short(self):
        assert anonymise("user@example.com") == anonymise("user@example.com")
        assert len(anonymise("user@example.com")) == 12
        assert "user" not in anonymise("user@example.com")

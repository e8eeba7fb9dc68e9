from __future__ import annotations

from datetime import timedelta

import pytest

from authcore.core.security import (
    TokenCodec,
    TokenExpiredError,
    TokenInvalidError,
    TokenSettings,
    session_claims,
)


def test_token_pair_round_trips_claims(codec):
    pair = codec.issue_token_pair({"sub": 42, "role": "hospital", "email": "h@example.com"})

    assert pair.token_type == "bearer"
    assert pair.expires_in == 15 * 60
    assert pair.access_token != pair.refresh_token

    access = codec.decode_access_token(pair.access_token)
    refresh = codec.decode_refresh_token(pair.refresh_token)

    assert access["sub"] == "42"
    assert access["purpose"] == "access"
    assert refresh["sub"] == "42"
    assert refresh["purpose"] == "refresh"
    assert refresh["role"] == "hospital"
    assert refresh["iss"] == "medikariyer-api"
    assert refresh["aud"] == "medikariyer-client"
    assert access["jti"] != refresh["jti"]


def test_tokens_minted_back_to_back_are_distinct(codec):
    # Two devices logging in within the same second must not share a token.
    first = codec.issue_refresh_token({"sub": "1"})
    second = codec.issue_refresh_token({"sub": "1"})
    assert first != second


def test_access_and_refresh_secrets_are_not_interchangeable(codec):
    pair = codec.issue_token_pair({"sub": "1"})

    with pytest.raises(TokenInvalidError):
        codec.decode_refresh_token(pair.access_token)
    with pytest.raises(TokenInvalidError):
        codec.decode_access_token(pair.refresh_token)


def test_refresh_token_signed_with_refresh_secret_but_access_purpose_is_rejected(token_settings):
    # Same key material for both sides to isolate the purpose check.
    swapped = TokenSettings(
        access_secret=token_settings.refresh_secret,
        refresh_secret=token_settings.access_secret,
    )
    forged_access = TokenCodec(swapped).issue_access_token({"sub": "1"})

    with pytest.raises(TokenInvalidError):
        TokenCodec(token_settings).decode_refresh_token(forged_access)


def test_tampered_token_is_invalid(codec, tamper):
    token = codec.issue_refresh_token({"sub": "7"})
    with pytest.raises(TokenInvalidError):
        codec.decode_refresh_token(tamper(token))


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", None])
def test_garbage_is_invalid(codec, garbage):
    with pytest.raises(TokenInvalidError):
        codec.decode_refresh_token(garbage)


def test_expired_tokens_raise_expired(token_settings):
    expired = TokenCodec(
        TokenSettings(
            access_secret=token_settings.access_secret,
            refresh_secret=token_settings.refresh_secret,
            access_ttl=timedelta(seconds=-5),
            refresh_ttl=timedelta(seconds=-5),
        )
    )
    pair = expired.issue_token_pair({"sub": "1"})

    with pytest.raises(TokenExpiredError):
        expired.decode_access_token(pair.access_token)
    with pytest.raises(TokenExpiredError):
        expired.decode_refresh_token(pair.refresh_token)


def test_foreign_audience_is_invalid(token_settings):
    other = TokenCodec(
        TokenSettings(
            access_secret=token_settings.access_secret,
            refresh_secret=token_settings.refresh_secret,
            audience="some-other-client",
        )
    )
    token = other.issue_refresh_token({"sub": "1"})

    with pytest.raises(TokenInvalidError):
        TokenCodec(token_settings).decode_refresh_token(token)


def test_reserved_claims_are_owned_by_codec(codec):
    token = codec.issue_refresh_token({"sub": "1", "purpose": "access", "exp": 1, "jti": "fixed"})
    payload = codec.decode_refresh_token(token)

    assert payload["purpose"] == "refresh"
    assert payload["jti"] != "fixed"
    assert payload["exp"] > payload["iat"]


def test_session_claims_strips_codec_fields(codec):
    payload = codec.decode_refresh_token(codec.issue_refresh_token({"sub": "3", "role": "admin"}))
    assert session_claims(payload) == {"sub": "3", "role": "admin"}


def test_subject_is_required(codec):
    with pytest.raises(ValueError):
        codec.issue_access_token({"role": "doctor"})
    with pytest.raises(ValueError):
        codec.issue_refresh_token({"sub": "  "})


def test_token_settings_require_two_distinct_secrets():
    with pytest.raises(ValueError):
        TokenSettings(access_secret="same", refresh_secret="same")
    with pytest.raises(ValueError):
        TokenSettings(access_secret="", refresh_secret="x")

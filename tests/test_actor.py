from __future__ import annotations

import base64

from projecthub.services.actor import Actor, decode_auth_token, encode_auth_token


def test_token_round_trip() -> None:
    token = encode_auth_token(7, "dana.reyes@example.com", issued_at=1700000000000)

    assert base64.b64decode(token).decode() == "7:dana.reyes@example.com:1700000000000"
    assert decode_auth_token(token) == Actor(user_id=7, email="dana.reyes@example.com")


def test_malformed_tokens_yield_no_actor() -> None:
    assert decode_auth_token(None) is None
    assert decode_auth_token("") is None
    assert decode_auth_token("not base64!!") is None
    assert decode_auth_token(base64.b64encode(b"abc:mail").decode()) is None


def test_fallback_name_is_email_prefix() -> None:
    assert Actor(user_id=1, email="dana.reyes@example.com").fallback_name == "dana.reyes"

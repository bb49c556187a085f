"""Unit tests for auth/tokens.py -- TokenCodec encode/decode and password helpers.

Covers:
- encode() is deterministic for identical inputs and key
- decode() returns subject, timestamps, kind and extra claims
- decode() error classes: malformed, bad signature, expired
- reserved claim names are refused in extra claims
- encode() refuses an empty or non-string subject and unknown kinds
- authenticate_user() refuses wrong passwords and disabled accounts
"""

from datetime import timedelta

import pytest
from jose import jwt

from auth.errors import InvalidSignature, MalformedToken, TokenExpired
from auth.models import TokenKind, User
from auth.tokens import TokenCodec, authenticate_user, hash_password, verify_password


def _window(clock, hours: int = 1):
    issued = clock.now()
    return issued, issued + timedelta(hours=hours)


class TestEncode:
    def test_same_inputs_same_token(self, codec, clock) -> None:
        issued, expires = _window(clock)
        first = codec.encode("alice", issued, expires, extra={"b": 2, "a": "x"})
        second = codec.encode("alice", issued, expires, extra={"a": "x", "b": 2})
        assert first == second

    def test_different_key_different_token(self, codec, clock) -> None:
        issued, expires = _window(clock)
        other = TokenCodec("another-signing-key-0123456789abcdef0123", clock)
        assert codec.encode("alice", issued, expires) != other.encode("alice", issued, expires)

    def test_token_id_changes_token(self, codec, clock) -> None:
        issued, expires = _window(clock)
        assert codec.encode("alice", issued, expires, token_id="a") != codec.encode(
            "alice", issued, expires, token_id="b"
        )

    @pytest.mark.parametrize("name", ["sub", "exp", "typ", "jti"])
    def test_reserved_extra_claim_refused(self, codec, clock, name: str) -> None:
        issued, expires = _window(clock)
        with pytest.raises(MalformedToken):
            codec.encode("alice", issued, expires, extra={name: "x"})

    def test_unserializable_extra_claim_refused(self, codec, clock) -> None:
        issued, expires = _window(clock)
        with pytest.raises(MalformedToken):
            codec.encode("alice", issued, expires, extra={"when": object()})

    @pytest.mark.parametrize("subject", ["", 123, None])
    def test_bad_subject_refused(self, codec, clock, subject) -> None:
        issued, expires = _window(clock)
        with pytest.raises(MalformedToken):
            codec.encode(subject, issued, expires)

    def test_unknown_kind_refused(self, codec, clock) -> None:
        issued, expires = _window(clock)
        with pytest.raises(MalformedToken):
            codec.encode("alice", issued, expires, kind="bogus")

    def test_kind_given_as_string_value(self, codec, clock) -> None:
        issued, expires = _window(clock)
        assert codec.decode(codec.encode("alice", issued, expires, kind="session")).kind == TokenKind.SESSION


class TestDecode:
    def test_decode_returns_claims(self, codec, clock) -> None:
        issued, expires = _window(clock)
        token = codec.encode("alice", issued, expires, extra={"client": "cli"}, token_id="t-1")
        claims = codec.decode(token)
        assert claims.subject == "alice"
        assert claims.issued_at == issued
        assert claims.expires_at == expires
        assert claims.kind is TokenKind.API
        assert claims.token_id == "t-1"
        assert claims.extra == {"client": "cli"}

    def test_session_kind_survives(self, codec, clock) -> None:
        issued, expires = _window(clock)
        claims = codec.decode(codec.encode("alice", issued, expires, kind=TokenKind.SESSION))
        assert claims.kind is TokenKind.SESSION

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "Bearer x"])
    def test_garbage_is_malformed(self, codec, token: str) -> None:
        with pytest.raises(MalformedToken):
            codec.decode(token)

    def test_missing_subject_is_malformed(self, codec, clock) -> None:
        issued, expires = _window(clock)
        token = jwt.encode(
            {"iat": int(issued.timestamp()), "exp": int(expires.timestamp()), "typ": "api"},
            "test-signing-key-0123456789abcdef0123456789abcdef",
            algorithm="HS256",
        )
        with pytest.raises(MalformedToken):
            codec.decode(token)

    def test_wrong_key_is_bad_signature(self, codec, clock) -> None:
        issued, expires = _window(clock)
        forged = TokenCodec("attacker-signing-key-0123456789abcdef0", clock).encode("alice", issued, expires)
        with pytest.raises(InvalidSignature):
            codec.decode(forged)

    def test_tampered_payload_is_bad_signature(self, codec, clock) -> None:
        issued, expires = _window(clock)
        header, _payload, signature = codec.encode("alice", issued, expires).split(".")
        _h, other_payload, _s = codec.encode("mallory", issued, expires).split(".")
        with pytest.raises(InvalidSignature):
            codec.decode(f"{header}.{other_payload}.{signature}")

    def test_expired_token(self, codec, clock) -> None:
        issued, expires = _window(clock)
        token = codec.encode("alice", issued, expires)
        clock.advance(timedelta(hours=1, seconds=1))
        with pytest.raises(TokenExpired):
            codec.decode(token)

    def test_exp_equal_to_now_still_valid(self, codec, clock) -> None:
        issued, expires = _window(clock)
        token = codec.encode("alice", issued, expires)
        clock.advance(timedelta(hours=1))
        assert codec.decode(token).subject == "alice"


class TestPasswords:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_verify_against_garbage_hash(self) -> None:
        assert not verify_password("s3cret", "not-a-bcrypt-hash")

    def test_authenticate_user(self, user_store, alice) -> None:
        assert authenticate_user(user_store, "alice", "alice-pass").id == alice.id
        assert authenticate_user(user_store, "alice", "nope") is None
        assert authenticate_user(user_store, "nobody", "alice-pass") is None

    def test_locked_account_cannot_authenticate(self, user_store) -> None:
        user_store.create_user(User(username="carol", hashed_password=hash_password("carol-pass"), account_locked=True))
        assert authenticate_user(user_store, "carol", "carol-pass") is None

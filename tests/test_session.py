"""Tests for the signed session cookie codec."""

import pytest

from shareiscare.services.session import (
    ANONYMOUS,
    SESSION_MAX_AGE,
    Role,
    issue,
    principal_for,
    sign,
    verify,
)

KEY = "k" * 64
NOW = 1_700_000_000


class TestIssueVerify:
    def test_round_trip(self):
        token = issue("admin", KEY, now=NOW)
        assert verify(token, KEY, now=NOW) == "admin"

    def test_token_format(self):
        token = issue("admin", KEY, now=NOW)
        identity, timestamp, signature = token.split(":")
        assert identity == "admin"
        assert timestamp == str(NOW)
        assert signature == sign("admin", str(NOW), KEY)
        assert len(signature) == 64

    def test_different_key_rejected(self):
        token = issue("admin", KEY, now=NOW)
        assert verify(token, "other-key", now=NOW) is None

    def test_tampered_identity_rejected(self):
        token = issue("guest", KEY, now=NOW)
        _, timestamp, signature = token.split(":")
        assert verify(f"admin:{timestamp}:{signature}", KEY, now=NOW) is None

    def test_tampered_timestamp_rejected(self):
        token = issue("admin", KEY, now=NOW)
        identity, _, signature = token.split(":")
        assert verify(f"{identity}:{NOW + 1}:{signature}", KEY, now=NOW) is None

    def test_every_signature_byte_matters(self):
        token = issue("admin", KEY, now=NOW)
        prefix, signature = token.rsplit(":", 1)
        for i, ch in enumerate(signature):
            flipped = "0" if ch != "0" else "1"
            forged = f"{prefix}:{signature[:i]}{flipped}{signature[i + 1:]}"
            assert verify(forged, KEY, now=NOW) is None

    @pytest.mark.parametrize(
        "token",
        [None, "", "admin", "admin:123", "a:b:c:d", f"admin:notanumber:{'0' * 64}"],
    )
    def test_malformed_rejected(self, token):
        assert verify(token, KEY, now=NOW) is None

    @pytest.mark.parametrize("signature", ["\xe9", "é" * 64, "☃" + "0" * 63])
    def test_non_ascii_signature_rejected(self, signature):
        assert verify(f"admin:{NOW}:{signature}", KEY, now=NOW) is None

    def test_non_ascii_identity_round_trip(self):
        token = issue("josé", KEY, now=NOW)
        assert verify(token, KEY, now=NOW) == "josé"


class TestExpiry:
    def test_just_inside_max_age(self):
        token = issue("admin", KEY, now=NOW)
        assert verify(token, KEY, now=NOW + SESSION_MAX_AGE) == "admin"

    def test_expired(self):
        token = issue("admin", KEY, now=NOW)
        assert verify(token, KEY, now=NOW + SESSION_MAX_AGE + 1) is None

    def test_custom_max_age(self):
        token = issue("admin", KEY, now=NOW)
        assert verify(token, KEY, max_age=10, now=NOW + 11) is None

    def test_far_future_timestamp_rejected(self):
        token = issue("admin", KEY, now=NOW + 3600)
        assert verify(token, KEY, now=NOW) is None


class TestPrincipal:
    def test_anonymous(self):
        principal = principal_for(None, "admin")
        assert principal is ANONYMOUS
        assert not principal.is_authenticated
        assert not principal.is_admin

    def test_admin(self):
        principal = principal_for("admin", "admin")
        assert principal.role == Role.ADMIN
        assert principal.is_admin
        assert principal.is_authenticated

    def test_other_user(self):
        principal = principal_for("guest", "admin")
        assert principal.role == Role.USER
        assert principal.username == "guest"
        assert principal.is_authenticated
        assert not principal.is_admin

    def test_non_ascii_admin_username(self):
        assert principal_for("josé", "josé").is_admin
        assert principal_for("jose", "josé").role == Role.USER
        assert principal_for("josé", "admin").role == Role.USER

"""Tests for one-time code generation and hashing."""

from datetime import datetime, timedelta, timezone

from kita.auth.otp import (
    OTP_MAX,
    OTP_MIN,
    generate_otp,
    hash_otp,
    is_otp_expired,
    otp_expiry,
    verify_otp,
)


class TestGenerateOtp:
    def test_six_digits_in_range(self):
        for _ in range(200):
            code = generate_otp()
            assert len(code) == 6
            assert code.isdigit()
            assert OTP_MIN <= int(code) <= OTP_MAX

    def test_codes_vary(self):
        assert len({generate_otp() for _ in range(50)}) > 1


class TestOtpHash:
    def test_roundtrip(self):
        stored = hash_otp("482913", "member@example.com")
        assert verify_otp("482913", "member@example.com", stored) is True

    def test_wrong_code(self):
        stored = hash_otp("482913", "member@example.com")
        assert verify_otp("482914", "member@example.com", stored) is False

    def test_bound_to_email(self):
        stored = hash_otp("482913", "member@example.com")
        assert verify_otp("482913", "other@example.com", stored) is False

    def test_hash_is_not_the_code(self):
        stored = hash_otp("482913", "member@example.com")
        assert "482913" not in stored
        assert len(stored) == 64

    def test_depends_on_server_secret(self, monkeypatch):
        from kita.config import get_settings

        before = hash_otp("482913", "member@example.com")
        monkeypatch.setenv("KITA_OTP_SECRET", "rotated-secret")
        get_settings.cache_clear()
        assert hash_otp("482913", "member@example.com") != before


class TestExpiry:
    def test_ten_minutes(self):
        now = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
        assert otp_expiry(now) == now + timedelta(minutes=10)

    def test_is_expired(self):
        expires_at = datetime(2025, 1, 1, 9, 10, tzinfo=timezone.utc)
        assert is_otp_expired(expires_at, expires_at) is False
        assert is_otp_expired(expires_at, expires_at + timedelta(seconds=1)) is True

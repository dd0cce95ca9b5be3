"""Tests for static API key checks."""

from kita.auth.api_keys import verify_api_key


class TestVerifyApiKey:
    def test_matching_key(self):
        assert verify_api_key("site-key", "site-key") is True

    def test_wrong_key(self):
        assert verify_api_key("site-kez", "site-key") is False

    def test_missing_key(self):
        assert verify_api_key(None, "site-key") is False
        assert verify_api_key("", "site-key") is False

    def test_unconfigured_rejects_everything(self):
        assert verify_api_key("anything", "") is False
        assert verify_api_key("", "") is False

"""Tests for utils/sanitize.py."""

from __future__ import annotations

from dimstar.utils.sanitize import mask_secret, sanitize_error


class TestSanitizeError:
    def test_nvidia_key_redacted(self):
        assert sanitize_error("invalid key nvapi-AbC_123-xyz") == "invalid key [REDACTED_KEY]"

    def test_bearer_redacted(self):
        assert "tok123" not in sanitize_error("header Bearer tok123 rejected")

    def test_home_redacted(self, monkeypatch):
        monkeypatch.delenv("USERPROFILE", raising=False)
        monkeypatch.setenv("HOME", "/home/alice")
        assert sanitize_error("cannot read /home/alice/.dimstar") == "cannot read [USER_HOME]/.dimstar"

    def test_empty(self):
        assert sanitize_error("") == ""


class TestMaskSecret:
    def test_long_secret(self):
        assert mask_secret("nvapi-1234567890abcd") == "nvap...abcd"

    def test_short_secret_fully_masked(self):
        assert mask_secret("short") == "*****"

    def test_empty(self):
        assert mask_secret("") == ""

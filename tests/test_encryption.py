"""
Tests for at-rest token encryption.
"""

from cryptography.fernet import Fernet

from connectors.encryption import TokenCipher


class TestTokenCipher:
    def test_round_trip_with_key(self):
        cipher = TokenCipher(Fernet.generate_key().decode())
        secret = cipher.encrypt("access-token")
        assert cipher.enabled
        assert secret != "access-token"
        assert cipher.decrypt(secret) == "access-token"

    def test_empty_tokens_stay_empty(self):
        cipher = TokenCipher(Fernet.generate_key().decode())
        assert cipher.encrypt("") == ""
        assert cipher.decrypt("") == ""

    def test_legacy_plaintext_passes_through(self):
        cipher = TokenCipher(Fernet.generate_key().decode())
        assert cipher.decrypt("stored-before-encryption") == "stored-before-encryption"

    def test_disabled_without_key(self):
        cipher = TokenCipher("")
        assert not cipher.enabled
        assert cipher.encrypt("plain") == "plain"

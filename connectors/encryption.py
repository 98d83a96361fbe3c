"""
Encrypt / decrypt stored social tokens with Fernet.

The key comes from ``TOKEN_ENCRYPTION_KEY``.  Without one, tokens are
written as plaintext and a warning is logged once.  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)


class TokenCipher:
    """Fernet wrapper that degrades to a pass-through when no key is set."""

    def __init__(self, key: Optional[str]):
        self._fernet: Optional[Fernet] = None
        if key:
            self._fernet = Fernet(key.encode())
            logger.info("Token encryption enabled (Fernet)")
        else:
            logger.warning("TOKEN_ENCRYPTION_KEY not set — social tokens will be stored as plaintext")

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, plaintext: str) -> str:
        if not plaintext or self._fernet is None:
            return plaintext
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a stored token.  Rows written before encryption was switched
        on are not Fernet tokens and are returned unchanged.
        """
        if not ciphertext or self._fernet is None:
            return ciphertext
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.debug("Stored token is not Fernet ciphertext; treating as legacy plaintext")
            return ciphertext


_cipher: Optional[TokenCipher] = None


def get_cipher() -> TokenCipher:
    """Lazy-initialise the process-wide cipher from settings."""
    global _cipher
    if _cipher is None:
        _cipher = TokenCipher(config.token_encryption_key)
    return _cipher


def encrypt_token(plaintext: str) -> str:
    return get_cipher().encrypt(plaintext)


def decrypt_token(ciphertext: str) -> str:
    return get_cipher().decrypt(ciphertext)

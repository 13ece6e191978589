"""Terminal credential handling.

Terminals obfuscate their login credentials with a repeating-key XOR over a
shared key and base64-encode the result. Successful logins are kept in an
in-memory store keyed by token.
"""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


def xor_cipher(text: str, key: str) -> str:
    """XOR each character of ``text`` with the repeating ``key``. Self-inverse."""
    return "".join(chr(ord(c) ^ ord(key[i % len(key)])) for i, c in enumerate(text))


def encrypt(text: str, key: str) -> str:
    """Obfuscate a credential the way a terminal does before logging in."""
    return base64.b64encode(xor_cipher(text, key).encode("utf-8")).decode("ascii")


def decrypt(encrypted: str, key: str) -> str | None:
    """Recover a credential sent by a terminal.

    Returns:
        The plaintext, or None if the value is not valid base64/UTF-8
    """
    try:
        decoded = base64.b64decode(encrypted, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as e:
        logger.warning(f"Could not decrypt credential: {e}")
        return None
    return xor_cipher(decoded, key)


def generate_token() -> str:
    return secrets.token_hex(32)


def generate_session_key() -> str:
    return secrets.token_hex(16)


@dataclass
class LoginRecord:
    username: str
    session_key: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class LoginStore:
    """Tokens issued by /login. Lost on restart."""

    def __init__(self) -> None:
        self._records: dict[str, LoginRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def issue(self, username: str) -> tuple[str, LoginRecord]:
        """Create and remember a new token for ``username``."""
        token = generate_token()
        record = LoginRecord(username=username, session_key=generate_session_key())
        with self._lock:
            self._records[token] = record
        return token, record

    def get(self, token: str | None) -> LoginRecord | None:
        if not token:
            return None
        with self._lock:
            return self._records.get(token)

    def is_valid(self, token: str | None) -> bool:
        return self.get(token) is not None

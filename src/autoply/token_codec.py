"""Summary: Token encoding utilities for OAuth credentials.

Importance: Keeps Gmail tokens obscured when stored in SQLite.
Alternatives: Use a dedicated secrets manager or strong encryption library.
"""

from __future__ import annotations

import base64
import hashlib
import hmac

_PREFIX = "v1:"


class TokenCodec:
    """Summary: Keystream obfuscation with an integrity tag.

    Importance: Detects tokens written under a different secret instead of
    returning garbage to the Gmail API.
    Alternatives: Use a proper encryption library with key management.
    """

    def __init__(self, secret: str) -> None:
        self._secret = (secret or "autoply").encode("utf-8")

    def encode(self, plaintext: str) -> str:
        raw = plaintext.encode("utf-8")
        masked = bytes(b ^ k for b, k in zip(raw, _keystream(self._secret, len(raw))))
        tag = hmac.new(self._secret, masked, hashlib.sha256).digest()[:8]
        return _PREFIX + base64.urlsafe_b64encode(tag + masked).decode("utf-8")

    def decode(self, payload: str) -> str:
        """Summary: Decode a stored token.

        Importance: Raises ValueError on malformed or tampered payloads.
        Alternatives: Skip decoding and require re-authentication.
        """

        if not payload.startswith(_PREFIX):
            raise ValueError("Unrecognized token encoding")
        blob = base64.urlsafe_b64decode(payload[len(_PREFIX):].encode("utf-8"))
        tag, masked = blob[:8], blob[8:]
        expected = hmac.new(self._secret, masked, hashlib.sha256).digest()[:8]
        if not hmac.compare_digest(tag, expected):
            raise ValueError("Token integrity check failed")
        plaintext = bytes(b ^ k for b, k in zip(masked, _keystream(self._secret, len(masked))))
        return plaintext.decode("utf-8")


def _keystream(secret: bytes, length: int) -> bytes:
    output = b""
    counter = 0
    while len(output) < length:
        output += hashlib.sha256(secret + counter.to_bytes(4, "big")).digest()
        counter += 1
    return output[:length]

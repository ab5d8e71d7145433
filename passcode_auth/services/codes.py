"""
Passcode generation and storage encoding.

Codes are drawn digit by digit from ``secrets`` so every position is
independent and uniform over 0-9. The encoder decides what actually lands in
the store: the plaintext code, or a salted SHA-256 digest of it.
"""

import hashlib
import hmac
import logging
import secrets
import string

from passcode_auth.schemas.errors import RandomSourceUnavailable

LOGGER = logging.getLogger(__name__)

DEFAULT_CODE_LENGTH = 6


class CodeGenerator:
    def __init__(self, length: int = DEFAULT_CODE_LENGTH) -> None:
        if length < 1:
            raise ValueError("OTP length must be positive")
        self.length = length

    def generate(self, length: int | None = None) -> str:
        size = length or self.length
        try:
            return "".join(secrets.choice(string.digits) for _ in range(size))
        except NotImplementedError as exc:
            # os.urandom raises this when the platform has no entropy source.
            LOGGER.critical("Secure random source is unavailable")
            raise RandomSourceUnavailable("Secure random source is unavailable") from exc


class PlainCodeEncoder:
    exposes_code = True

    def encode(self, code: str) -> str:
        return code

    def matches(self, candidate: str, stored: str) -> bool:
        return hmac.compare_digest(candidate.encode("utf-8"), stored.encode("utf-8"))


class HashedCodeEncoder:
    exposes_code = False

    def encode(self, code: str) -> str:
        salt = secrets.token_hex(16)
        return f"{salt}:{_digest(salt, code)}"

    def matches(self, candidate: str, stored: str) -> bool:
        salt, _, expected = stored.partition(":")
        if not salt or not expected:
            return False
        return hmac.compare_digest(_digest(salt, candidate), expected)


def _digest(salt: str, code: str) -> str:
    return hashlib.sha256(f"{salt}:{code}".encode("utf-8")).hexdigest()


def build_code_encoder(mode: str) -> PlainCodeEncoder | HashedCodeEncoder:
    if mode == "plain":
        return PlainCodeEncoder()
    if mode == "hashed":
        return HashedCodeEncoder()
    raise ValueError(f"Unknown OTP storage mode: {mode}")

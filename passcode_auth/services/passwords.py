"""
Password Hashing
================
Argon2id hashing for password credentials. Hashing is memory-hard and slow on
purpose, so both operations run in the default executor.
"""

import asyncio
from functools import lru_cache

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from passcode_auth.schemas.errors import EmailOtpError, ErrorCode


@lru_cache(maxsize=1)
def get_cached_hasher() -> PasswordHasher:
    return PasswordHasher(
        time_cost=3,
        memory_cost=65536,
        parallelism=4,
        hash_len=32,
        salt_len=16,
        type=Type.ID,
    )


async def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Args:
        password: Plain text password to hash

    Returns:
        Argon2id hash string (includes algorithm, parameters, salt, and hash)
    """
    if not password:
        raise ValueError("Password cannot be empty")
    hasher = get_cached_hasher()
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, hasher.hash, password)


async def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    hasher = get_cached_hasher()

    def _verify() -> bool:
        try:
            return hasher.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _verify)


def check_password_length(password: str, min_length: int, max_length: int) -> None:
    if len(password) < min_length:
        raise EmailOtpError(ErrorCode.INVALID_PASSWORD, "Password too short")
    if len(password) > max_length:
        raise EmailOtpError(ErrorCode.INVALID_PASSWORD, "Password too long")

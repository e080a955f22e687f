"""
Password hashing and verification using Argon2id.

Uses passlib with the argon2-cffi backend. The salt is generated per call
and embedded in the encoded hash ($argon2id$v=19$m=...,t=...,p=...$salt$hash),
so no separate salt storage is needed.

Hashing is memory-hard and deliberately slow. Every hash/verify call is
dispatched onto a small dedicated thread pool and waited on with a timeout,
so a burst of sign-ins cannot occupy the request threads indefinitely.

Security considerations:
- Verification compares the decoded hash digests in constant time
- Cost parameters can be raised over time; needs_rehash() detects old hashes
- Plaintext and hash values are never logged
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from authcore.config import Settings
from authcore.services.exceptions import ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def password_policy_violation(password: str) -> str | None:
    """
    Check a candidate password against the password policy.

    Returns:
        A client-safe description of the first violated rule, or None
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    if len(password) > PASSWORD_MAX_LENGTH:
        return f"Password must be at most {PASSWORD_MAX_LENGTH} characters"
    if not any(c.isalpha() for c in password):
        return "Password must contain at least one letter"
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one digit"
    return None


class PasswordHasher:
    """
    Service for password hashing and verification.

    One instance is shared by the whole process; it owns the hashing
    thread pool. Call ``shutdown()`` on application exit.
    """

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 4,
        max_workers: int = 4,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._context = CryptContext(
            schemes=["argon2"],
            deprecated="auto",
            argon2__type="ID",
            argon2__time_cost=time_cost,
            argon2__memory_cost=memory_cost,
            argon2__parallelism=parallelism,
        )
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pwhash")
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "PasswordHasher":
        return cls(
            time_cost=settings.password_hash_time_cost,
            memory_cost=settings.password_hash_memory_cost,
            parallelism=settings.password_hash_parallelism,
            max_workers=settings.password_hash_workers,
            timeout_seconds=settings.password_hash_timeout_seconds,
        )

    def hash(self, password: str) -> str:
        """
        Hash a plaintext password using Argon2id.

        Args:
            password: The plaintext password to hash

        Returns:
            The encoded hash string (algorithm, version, parameters, salt, digest)

        Raises:
            ServiceError(INTERNAL): If the backend fails or the call times out

        Example:
            >>> hasher.hash("Secret123!").startswith("$argon2id$")
            True
        """
        return self._run("hash", self._context.hash, password)

    def verify(self, password: str, hashed_password: str) -> bool:
        """
        Verify a plaintext password against an Argon2 hash.

        Args:
            password: The plaintext password to verify
            hashed_password: The encoded hash to compare against

        Returns:
            True if password matches, False otherwise

        Raises:
            ServiceError(INTERNAL): If the stored hash cannot be parsed,
                the backend fails or the call times out
        """
        return self._run("verify", self._context.verify, password, hashed_password)

    def needs_rehash(self, hashed_password: str) -> bool:
        """
        Check if a hash was produced with outdated parameters.

        Call this after successful authentication to keep hashes current:

            if hasher.needs_rehash(user.hashed_password):
                user.hashed_password = hasher.hash(plain_password)
        """
        try:
            return self._context.needs_update(hashed_password)
        except (UnknownHashError, ValueError):
            return True

    def shutdown(self) -> None:
        """Stop the hashing thread pool."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _run(self, operation: str, func: Callable[..., T], *args: str) -> T:
        future = self._executor.submit(func, *args)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.error(f"Password {operation} timed out after {self._timeout}s")
            raise ServiceError.internal(f"password_{operation}", cause="timeout")
        except (UnknownHashError, ValueError, TypeError) as e:
            # Message only carries the exception type: the passlib text can
            # echo parts of the stored hash.
            logger.error(f"Password {operation} failed: {type(e).__name__}")
            raise ServiceError.internal(f"password_{operation}", cause=type(e).__name__) from e

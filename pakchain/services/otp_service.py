"""
One-time code service.

Issues short numeric codes for email sign-in and checks them. Codes live in
Redis with an expiry, so they survive restarts and are shared between
instances; delivery is left to an injected ``CodeSender``.
"""

import hmac
import secrets
from typing import Protocol

from loguru import logger
from redis.asyncio import Redis

from pakchain.config.constants import OTP_CODE_LENGTH, OTP_KEY_PREFIX
from pakchain.config.settings import settings
from pakchain.utils.exceptions import OtpError
from pakchain.utils.redis_utils import get_redis_client, get_redis_url_masked
from pakchain.utils.security import mask_email
from pakchain.utils.validation import validate_email


class CodeSender(Protocol):
    """Delivers a code to an address (email, SMS...)."""

    async def send(self, address: str, code: str) -> None:
        ...


class OtpStore:
    """Expiring code cache over Redis."""

    def __init__(self, redis_client: Redis, prefix: str = OTP_KEY_PREFIX) -> None:
        """
        Initialize store.

        Args:
            redis_client: Redis client (decode_responses=True)
            prefix: Key prefix
        """
        self.redis = redis_client
        self.prefix = prefix

    def _code_key(self, address: str) -> str:
        return f"{self.prefix}:code:{address}"

    def _attempts_key(self, address: str) -> str:
        return f"{self.prefix}:attempts:{address}"

    async def save(self, address: str, code: str, ttl: int) -> None:
        """Store a code, replacing any previous one and its attempt count."""
        await self.redis.set(self._code_key(address), code, ex=ttl)
        await self.redis.delete(self._attempts_key(address))

    async def get(self, address: str) -> str | None:
        """Stored code, or None if absent or expired."""
        return await self.redis.get(self._code_key(address))

    async def register_attempt(self, address: str, ttl: int) -> int:
        """Count a verification attempt; returns the count so far."""
        key = self._attempts_key(address)
        attempts = await self.redis.incr(key)
        if attempts == 1:
            await self.redis.expire(key, ttl)
        return attempts

    async def clear(self, address: str) -> None:
        """Remove code and attempt count."""
        await self.redis.delete(
            self._code_key(address), self._attempts_key(address)
        )


class OtpService:
    """Issue and verify one-time codes."""

    def __init__(
        self,
        store: OtpStore,
        sender: CodeSender,
        ttl_seconds: int | None = None,
        max_attempts: int | None = None,
    ) -> None:
        """
        Initialize service.

        Args:
            store: Code store
            sender: Delivery capability
            ttl_seconds: Code lifetime (defaults to settings)
            max_attempts: Wrong guesses allowed per code (defaults to settings)
        """
        self.store = store
        self.sender = sender
        self.ttl_seconds = ttl_seconds or settings.otp_ttl_seconds
        self.max_attempts = max_attempts or settings.otp_max_attempts
        self.logger = logger.bind(service="OtpService")

    @classmethod
    async def from_settings(cls, sender: CodeSender) -> "OtpService":
        """Build a service on the Redis instance from application settings."""
        redis_client = await get_redis_client()
        logger.info(f"One-time code store on {get_redis_url_masked()}")
        return cls(OtpStore(redis_client), sender)

    @staticmethod
    def generate_code() -> str:
        """Random zero-padded numeric code."""
        return f"{secrets.randbelow(10**OTP_CODE_LENGTH):0{OTP_CODE_LENGTH}d}"

    async def issue(self, address: str) -> None:
        """
        Create a code for ``address`` and send it.

        Raises:
            OtpError: Invalid address
        """
        address = self._normalize(address)
        code = self.generate_code()
        await self.store.save(address, code, self.ttl_seconds)
        await self.sender.send(address, code)
        self.logger.info(
            f"One-time code issued for {mask_email(address)}, "
            f"expires in {self.ttl_seconds}s"
        )

    async def verify(self, address: str, code: str) -> bool:
        """
        Check a code. A matching code is consumed.

        Returns:
            True if the code matches

        Raises:
            OtpError: Invalid address or too many attempts
        """
        address = self._normalize(address)
        stored = await self.store.get(address)
        if stored is None:
            self.logger.info(f"No active code for {mask_email(address)}")
            return False

        attempts = await self.store.register_attempt(address, self.ttl_seconds)
        if attempts > self.max_attempts:
            await self.store.clear(address)
            self.logger.warning(
                f"Too many code attempts for {mask_email(address)}"
            )
            raise OtpError("Too many attempts, request a new code")

        if hmac.compare_digest(
            stored.encode(), (code or "").strip().encode()
        ):
            await self.store.clear(address)
            self.logger.success(f"Code verified for {mask_email(address)}")
            return True

        self.logger.info(
            f"Wrong code for {mask_email(address)} "
            f"(attempt {attempts}/{self.max_attempts})"
        )
        return False

    @staticmethod
    def _normalize(address: str) -> str:
        is_valid, error = validate_email(address)
        if not is_valid:
            raise OtpError(error)
        return address.strip().lower()

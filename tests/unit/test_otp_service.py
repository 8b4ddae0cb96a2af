"""Unit tests for one-time code issuance and verification."""

from unittest.mock import AsyncMock, patch

import pytest

from pakchain.services.otp_service import OtpService, OtpStore
from pakchain.utils.exceptions import OtpError


ADDRESS = "donor@example.org"


@pytest.fixture
def otp_service(fake_redis, code_sender):
    return OtpService(
        OtpStore(fake_redis), code_sender, ttl_seconds=600, max_attempts=3
    )


def sent_code(code_sender) -> str:
    return code_sender.sent[-1][1]


class TestFromSettings:
    """Construction from settings."""

    @pytest.mark.asyncio
    async def test_uses_configured_redis(self, fake_redis, code_sender):
        with patch(
            "pakchain.services.otp_service.get_redis_client",
            AsyncMock(return_value=fake_redis),
        ):
            service = await OtpService.from_settings(code_sender)

        assert service.store.redis is fake_redis
        assert service.ttl_seconds == 600

        await service.issue(ADDRESS)
        assert f"otp:code:{ADDRESS}" in fake_redis.values


class TestGenerateCode:
    """Code format."""

    def test_six_digits(self):
        for _ in range(50):
            code = OtpService.generate_code()
            assert len(code) == 6
            assert code.isdigit()


class TestIssue:
    """Issuing codes."""

    @pytest.mark.asyncio
    async def test_code_stored_and_sent(self, otp_service, fake_redis, code_sender):
        await otp_service.issue(ADDRESS)

        assert code_sender.sent == [(ADDRESS, sent_code(code_sender))]
        assert fake_redis.values[f"otp:code:{ADDRESS}"] == sent_code(code_sender)
        assert fake_redis.ttls[f"otp:code:{ADDRESS}"] == 600

    @pytest.mark.asyncio
    async def test_address_normalized(self, otp_service, code_sender):
        await otp_service.issue("  Donor@Example.ORG ")

        assert code_sender.sent[0][0] == ADDRESS

    @pytest.mark.asyncio
    async def test_invalid_address(self, otp_service, code_sender):
        with pytest.raises(OtpError):
            await otp_service.issue("not-an-email")

        assert code_sender.sent == []

    @pytest.mark.asyncio
    async def test_reissue_replaces_code(self, otp_service, code_sender):
        await otp_service.issue(ADDRESS)
        first = sent_code(code_sender)
        await otp_service.issue(ADDRESS)
        second = sent_code(code_sender)

        if first != second:
            assert await otp_service.verify(ADDRESS, first) is False
        assert await otp_service.verify(ADDRESS, second) is True


class TestVerify:
    """Checking codes."""

    @pytest.mark.asyncio
    async def test_correct_code_consumed(self, otp_service, code_sender):
        await otp_service.issue(ADDRESS)
        code = sent_code(code_sender)

        assert await otp_service.verify(ADDRESS, code) is True
        assert await otp_service.verify(ADDRESS, code) is False

    @pytest.mark.asyncio
    async def test_wrong_code(self, otp_service, code_sender):
        await otp_service.issue(ADDRESS)
        code = sent_code(code_sender)
        wrong = "000000" if code != "000000" else "111111"

        assert await otp_service.verify(ADDRESS, wrong) is False
        # The real code still works afterwards
        assert await otp_service.verify(ADDRESS, code) is True

    @pytest.mark.asyncio
    async def test_expired_code(self, otp_service, fake_redis, code_sender):
        await otp_service.issue(ADDRESS)
        fake_redis.expire_now(f"otp:code:{ADDRESS}")

        assert await otp_service.verify(ADDRESS, sent_code(code_sender)) is False

    @pytest.mark.asyncio
    async def test_no_code_issued(self, otp_service):
        assert await otp_service.verify(ADDRESS, "123456") is False

    @pytest.mark.asyncio
    async def test_attempt_limit(self, otp_service, fake_redis, code_sender):
        await otp_service.issue(ADDRESS)
        code = sent_code(code_sender)
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(3):
            assert await otp_service.verify(ADDRESS, wrong) is False

        with pytest.raises(OtpError):
            await otp_service.verify(ADDRESS, code)

        assert f"otp:code:{ADDRESS}" not in fake_redis.values
        assert await otp_service.verify(ADDRESS, code) is False

    @pytest.mark.asyncio
    async def test_non_ascii_input_rejected(self, otp_service, code_sender):
        await otp_service.issue(ADDRESS)

        assert await otp_service.verify(ADDRESS, "١٢٣٤٥٦") is False

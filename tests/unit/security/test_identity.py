"""Unit tests — InMemoryIdentityProvider and password hashing (identity.py)."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import patch

import pytest

from newsdesk.exceptions import InvalidCredentialsError, UserNotFoundError, ValidationError
from newsdesk.models import Role, User, UserStatus
from newsdesk.security.identity import InMemoryIdentityProvider, hash_secret, verify_secret

pytestmark = pytest.mark.unit


class TestHashing:

    def test_verify_accepts_correct_secret(self) -> None:
        encoded = hash_secret("s3cret", rounds=4)
        assert verify_secret("s3cret", encoded) is True

    def test_verify_rejects_wrong_secret(self) -> None:
        encoded = hash_secret("s3cret", rounds=4)
        assert verify_secret("S3cret", encoded) is False

    def test_hashes_are_salted(self) -> None:
        assert hash_secret("same", rounds=4) != hash_secret("same", rounds=4)

    def test_bcrypt_format_with_cost(self) -> None:
        assert hash_secret("x", rounds=5).startswith("$2b$05$")

    def test_malformed_hash_never_matches(self) -> None:
        assert verify_secret("s3cret", "not-a-bcrypt-hash") is False


class TestProvider:

    @pytest.fixture
    def provider(self) -> InMemoryIdentityProvider:
        return InMemoryIdentityProvider(rounds=4)

    async def test_register_creates_pending_author(self, provider: InMemoryIdentityProvider) -> None:
        user = await provider.register("Ada", "Ada@Example.com", "pw")
        assert user.status is UserStatus.PENDING
        assert user.role is Role.AUTHOR
        assert user.email == "ada@example.com"

    async def test_authenticate_returns_authoritative_record(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        created = await provider.register("Ada", "ada@example.com", "pw")
        user = await provider.authenticate("ada@example.com", "pw")
        assert user == created
        assert user.status is UserStatus.PENDING

    async def test_authenticate_rejects_bad_password(self, provider: InMemoryIdentityProvider) -> None:
        await provider.add_user("Ada", "ada@example.com", "pw")
        with pytest.raises(InvalidCredentialsError):
            await provider.authenticate("ada@example.com", "nope")

    async def test_authenticate_rejects_unknown_identity(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        with pytest.raises(InvalidCredentialsError):
            await provider.authenticate("ghost@example.com", "pw")

    async def test_pending_email_cannot_register_again(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        await provider.register("Ada", "ada@example.com", "pw")
        with pytest.raises(ValidationError) as exc_info:
            await provider.register("Ada", "ada@example.com", "pw")
        assert "pending request" in exc_info.value.reason

    async def test_active_email_cannot_register_again(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        await provider.add_user("Ada", "ada@example.com", "pw", status=UserStatus.ACTIVE)
        with pytest.raises(ValidationError):
            await provider.register("Ada", "ada@example.com", "pw")

    async def test_rejected_email_may_register_again(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        first = await provider.register("Ada", "ada@example.com", "old")
        await provider.update_user(first.model_copy(update={"status": UserStatus.REJECTED}))

        second = await provider.register("Ada L.", "ada@example.com", "new")
        assert second.id != first.id
        assert second.status is UserStatus.PENDING
        assert await provider.get_user(first.id) is None
        with pytest.raises(InvalidCredentialsError):
            await provider.authenticate("ada@example.com", "old")

    async def test_update_unknown_user_raises(self, provider: InMemoryIdentityProvider) -> None:
        with pytest.raises(UserNotFoundError):
            await provider.update_user(User(name="Ghost", email="ghost@example.com"))

    async def test_list_users(self, provider: InMemoryIdentityProvider) -> None:
        await provider.add_user("A", "a@example.com", "pw")
        await provider.add_user("B", "b@example.com", "pw")
        names = [u.name for u in await provider.list_users()]
        assert sorted(names) == ["A", "B"]

    async def test_overlong_secret_is_refused(self, provider: InMemoryIdentityProvider) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await provider.register("Ada", "ada@example.com", "x" * 73)
        assert exc_info.value.field == "secret"
        assert await provider.list_users() == []

    async def test_authenticate_runs_hash_off_the_event_loop(
        self, provider: InMemoryIdentityProvider
    ) -> None:
        await provider.add_user("Ada", "ada@example.com", "pw")
        ticks = 0

        async def ticker() -> None:
            nonlocal ticks
            while True:
                ticks += 1
                await asyncio.sleep(0)

        def slow_verify(secret: str, secret_hash: str) -> bool:
            time.sleep(0.05)
            return True

        task = asyncio.create_task(ticker())
        try:
            with patch("newsdesk.security.identity.verify_secret", side_effect=slow_verify):
                await provider.authenticate("ada@example.com", "pw")
        finally:
            task.cancel()
        assert ticks > 1

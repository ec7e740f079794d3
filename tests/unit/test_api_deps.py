"""Tests for authentication dependencies.

Local-first mode falls back to DEFAULT_USER_ID; hosted mode requires a
valid JWT cookie. Every failure returns the same generic 401.
"""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from pathfinder.core.config import settings
from tests.conftest import TEST_USER_ID, create_test_jwt

PROFICIENCY_URL = "/api/v1/cpa-pert/proficiency"


class TestHostedModeAuth:
    """JWT validation when auth is enabled."""

    @pytest.mark.asyncio
    async def test_valid_token_is_accepted(self, client: AsyncClient) -> None:
        """The fixture's signed cookie authenticates."""
        response = await client.get(PROFICIENCY_URL)

        assert response.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "token_kwargs",
        [
            {"expires_delta": timedelta(seconds=-10)},
            {"secret": "wrong-secret-that-is-also-at-least-32-characters"},
            {"audience": "someone-else"},
        ],
        ids=["expired", "bad-signature", "wrong-audience"],
    )
    async def test_invalid_tokens_are_rejected(
        self, unauthenticated_client: AsyncClient, token_kwargs: dict
    ) -> None:
        """Expired, forged or misaddressed tokens get 401."""
        unauthenticated_client.cookies.set(
            settings.auth_cookie_name, create_test_jwt(TEST_USER_ID, **token_kwargs)
        )

        response = await unauthenticated_client.get(PROFICIENCY_URL)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_cookie_is_rejected(
        self, unauthenticated_client: AsyncClient
    ) -> None:
        """A cookie that is not a JWT gets 401."""
        unauthenticated_client.cookies.set(settings.auth_cookie_name, "not-a-jwt")

        response = await unauthenticated_client.get(PROFICIENCY_URL)

        assert response.status_code == 401


class TestLocalModeAuth:
    """DEFAULT_USER_ID fallback when auth is disabled."""

    @pytest.mark.asyncio
    async def test_default_user_is_used(
        self, unauthenticated_client: AsyncClient
    ) -> None:
        """Requests act as DEFAULT_USER_ID without a cookie."""
        original_enabled = settings.auth_enabled
        original_default = settings.default_user_id
        settings.auth_enabled = False
        settings.default_user_id = uuid.uuid4()
        try:
            response = await unauthenticated_client.get(PROFICIENCY_URL)
        finally:
            settings.auth_enabled = original_enabled
            settings.default_user_id = original_default

        assert response.status_code == 200
        assert response.json()["data"] == []

    @pytest.mark.asyncio
    async def test_missing_default_user_is_401(
        self, unauthenticated_client: AsyncClient
    ) -> None:
        """Without DEFAULT_USER_ID local mode has no user to act as."""
        original_enabled = settings.auth_enabled
        original_default = settings.default_user_id
        settings.auth_enabled = False
        settings.default_user_id = None
        try:
            response = await unauthenticated_client.get(PROFICIENCY_URL)
        finally:
            settings.auth_enabled = original_enabled
            settings.default_user_id = original_default

        assert response.status_code == 401

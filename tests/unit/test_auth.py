"""
Unit tests for authentication module.
"""

from datetime import timedelta

import pytest
from fastapi import HTTPException

from shared.auth import (
    Actor,
    Role,
    create_access_token,
    decode_token,
    get_current_actor,
    has_min_role,
    require_min_role,
)


def _claims(**overrides) -> dict:
    claims = {"sub": "member-1", "role": Role.RECEPTION, "site_id": "site-1", "name": "Rosa"}
    claims.update(overrides)
    return claims


class TestRoleLadder:
    """Tests for role ordering."""

    @pytest.mark.parametrize(
        "role,required,expected",
        [
            (Role.SITE_ADMIN, Role.RECEPTION, True),
            (Role.RECEPTION, Role.RECEPTION, True),
            (Role.RECEPTION, Role.HOST, True),
            (Role.HOST, Role.RECEPTION, False),
            (Role.RECEPTION, Role.SITE_ADMIN, False),
            ("contractor", Role.HOST, False),
        ],
    )
    def test_has_min_role(self, role, required, expected) -> None:
        assert has_min_role(role, required) is expected

    def test_responders(self) -> None:
        assert Actor(id="a", role=Role.RECEPTION, site_id="s").is_responder
        assert Actor(id="a", role=Role.SITE_ADMIN, site_id="s").is_responder
        assert not Actor(id="a", role=Role.HOST, site_id="s").is_responder


class TestJWTTokens:
    """Tests for JWT token functions."""

    def test_create_access_token(self) -> None:
        """Test access token creation."""
        token = create_access_token(_claims())

        assert isinstance(token, str)
        assert len(token) > 50

    def test_decode_access_token(self) -> None:
        """Test access token decoding."""
        token = create_access_token(_claims())

        decoded = decode_token(token)

        assert decoded is not None
        assert decoded.sub == "member-1"
        assert decoded.role == Role.RECEPTION
        assert decoded.site_id == "site-1"
        assert decoded.name == "Rosa"

    def test_expired_token_rejected(self) -> None:
        """Test that expired tokens are rejected."""
        token = create_access_token(_claims(), expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None

    def test_tampered_token_rejected(self) -> None:
        """Test that a modified token fails verification."""
        token = create_access_token(_claims())

        assert decode_token(token[:-4] + "abcd") is None

    def test_token_without_site_rejected(self) -> None:
        """Sessions must be bound to a site."""
        claims = _claims()
        del claims["site_id"]

        assert decode_token(create_access_token(claims)) is None

    def test_unknown_role_rejected(self) -> None:
        assert decode_token(create_access_token(_claims(role="visitor"))) is None


class TestDependencies:
    """Tests for route dependencies."""

    @pytest.mark.asyncio
    async def test_current_actor_from_token(self) -> None:
        actor = await get_current_actor(create_access_token(_claims()))

        assert actor == Actor(id="member-1", role=Role.RECEPTION, site_id="site-1", name="Rosa")

    @pytest.mark.asyncio
    async def test_missing_token_unauthorized(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_actor(None)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_role_checker_forbids_lower_role(self) -> None:
        checker = require_min_role(Role.SITE_ADMIN)

        with pytest.raises(HTTPException) as exc_info:
            await checker(Actor(id="a", role=Role.RECEPTION, site_id="s"))

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_role_checker_passes_higher_role(self) -> None:
        actor = Actor(id="a", role=Role.SITE_ADMIN, site_id="s")

        assert await require_min_role(Role.RECEPTION)(actor) is actor

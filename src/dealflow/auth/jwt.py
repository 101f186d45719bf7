"""Verification of access tokens minted by the managed auth backend.

This service never issues tokens; it only checks the HS256 signature,
audience and expiry of the ones the front end forwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt

from dealflow.config import get_settings


@dataclass(frozen=True)
class CurrentUser:
    """Identity taken from a verified access token."""

    id: str
    email: str | None = None
    name: str | None = None


def verify_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token.

    Raises:
        jwt.InvalidTokenError: If the signature, audience or expiry is invalid,
            or the token has no subject.
    """
    settings = get_settings()
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options={"require": ["sub", "exp"]},
    )
    if not payload.get("sub"):
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)
    return payload


def user_from_claims(payload: dict[str, Any]) -> CurrentUser:
    metadata = payload.get("user_metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    name = metadata.get("display_name") or metadata.get("full_name")
    return CurrentUser(id=str(payload["sub"]), email=payload.get("email"), name=name)

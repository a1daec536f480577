from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

from family_tree.core.config import settings


@dataclass(frozen=True)
class AuthContext:
    principal_id: str


def get_auth_context(
    x_forwarded_user: str | None = Header(default=None, alias="X-Forwarded-User"),
    x_dev_user: str | None = Header(default=None, alias="X-Dev-User"),
) -> AuthContext | None:
    """
    Auth boundary.

    In prod, requests are expected to be behind Traefik Forward Auth, which injects
    X-Forwarded-User. With AUTH_MODE=none (dev/tests) the X-Dev-User header is trusted
    as-is and may be omitted for anonymous reads.
    """
    if settings.auth_mode == "none":
        if not x_dev_user:
            return None
        return AuthContext(principal_id=x_dev_user.strip().lower())

    principal = x_forwarded_user or x_dev_user
    if not principal:
        raise HTTPException(status_code=401, detail="missing auth header (X-Forwarded-User)")
    return AuthContext(principal_id=principal.strip().lower())


def require_auth(ctx: AuthContext | None = Depends(get_auth_context)) -> AuthContext:
    if ctx is None:
        raise HTTPException(status_code=401, detail="authentication required")
    return ctx

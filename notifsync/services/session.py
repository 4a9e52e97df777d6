from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import jwt

from notifsync.core.errors import SessionError


@dataclass(frozen=True, slots=True)
class SessionContext:
    user_id: int
    credential: str | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)


def _decode_claims(token: str) -> dict[str, Any]:
    # The client never holds the signing key; the backend verifies the token.
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise SessionError("Invalid session token") from exc


def parse_claims(payload: dict[str, Any], credential: str | None = None) -> SessionContext:
    raw_id = payload.get("usuarioId") or payload.get("user_id") or payload.get("sub")
    try:
        user_id = int(raw_id)
    except Exception as exc:
        raise SessionError("Invalid user id claim") from exc

    permissions = payload.get("permissions") or []
    if not isinstance(permissions, list):
        permissions = []

    return SessionContext(
        user_id=user_id,
        credential=credential,
        permissions=frozenset(str(p).strip() for p in permissions if str(p).strip()),
    )


def session_from_token(token: str) -> SessionContext:
    return parse_claims(_decode_claims(token), credential=token)

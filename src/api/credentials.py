"""Caller-supplied provider credentials."""

from typing import Optional

from fastapi import Header


def bearer_credential(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """Extract the key from 'Authorization: Bearer <key>', if present.

    A caller key overrides the server-side provider key for that request.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()

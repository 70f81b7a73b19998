"""Requester identity for feed endpoints.

Sessions are issued elsewhere; this module only verifies the access JWT (HS256,
signed with settings.secret_key) and, in development, accepts an X-User-Id header.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from feedrank.settings import settings

ISSUER = "feedrank-auth"
AUDIENCE = "feedrank-api"


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	session_id: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	try:
		payload = jwt.decode(
			token,
			settings.secret_key,
			algorithms=["HS256"],
			audience=AUDIENCE,
			issuer=ISSUER,
			leeway=5,
			options={"require": ["exp", "iat", "sub"]},
		)
	except jwt.InvalidTokenError:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")

	sub = str(payload.get("sub") or "").strip()
	if not sub:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	session_id = payload.get("sid")
	return AuthenticatedUser(id=sub, session_id=str(session_id) if session_id is not None else None)


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the requester from a bearer JWT, or the dev-only X-User-Id header."""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id and x_user_id.strip():
		return AuthenticatedUser(id=x_user_id.strip())
	raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")

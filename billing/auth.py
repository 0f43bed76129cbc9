# -*- coding: utf-8 -*-
"""
Organization context for billing requests.

Login and token issuing live in the surrounding platform; the billing engine
only decodes the bearer token it receives and resolves the caller's
organization from the ``org_id`` claim.
"""
import hmac
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from billing.config import Config
from billing.errors import Unauthorized

ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 8

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


def create_access_token(data: dict) -> str:
    # Used by the CLI tooling and the tests; the platform issues the real tokens
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, Config.SECRET_KEY, algorithm=Config.ALGORITHM)


def resolve_organization_id(token: Optional[str]) -> int:
    if not token:
        raise Unauthorized("Missing organization context")
    try:
        payload = jwt.decode(token, Config.SECRET_KEY, algorithms=[Config.ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid credentials")

    org_id = payload.get("org_id")
    if org_id is None:
        raise Unauthorized("Token carries no organization")
    try:
        return int(org_id)
    except (TypeError, ValueError):
        raise Unauthorized("Invalid organization id in token")


# --- FastAPI dependencies ---

async def get_current_organization(token: Optional[str] = Depends(oauth2_scheme)) -> int:
    return resolve_organization_id(token)


async def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)):
    """
    Guards the reconciliation trigger. The scheduler sends the shared secret in
    the ``X-Cron-Secret`` header.
    """
    if not Config.CRON_SECRET or not x_cron_secret:
        raise Unauthorized("Missing cron secret")
    if not hmac.compare_digest(x_cron_secret, Config.CRON_SECRET):
        raise Unauthorized("Invalid cron secret")
    return True

import logging
from typing import AsyncIterator

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .infrastructure.repositories import SqlAlchemyMemberRepository
from .utils.auth import ROLE_ADMIN, IdentityVerifier, JwtIdentityVerifier, VerifiedIdentity

logger = logging.getLogger(__name__)

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_identity_verifier() -> IdentityVerifier:
    settings = get_settings()
    return JwtIdentityVerifier(settings.auth_secret, settings.auth_algorithm)


def _unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers=_BEARER_CHALLENGE)


def extract_token(authorization: str | None, client_id_cookie: str | None) -> str | None:
    """Bearer header first, then the `client_id` cookie."""
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    if client_id_cookie:
        return client_id_cookie.strip() or None
    return None


def _verify(token: str | None, verifier: IdentityVerifier) -> VerifiedIdentity:
    if token is None:
        raise _unauthorized()
    try:
        return verifier.verify(token)
    except ValueError as exc:
        raise _unauthorized() from exc


async def get_current_client_id(
    authorization: str | None = Header(default=None),
    client_id: str | None = Cookie(default=None),
    session: AsyncSession = Depends(get_session),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> str:
    identity = _verify(extract_token(authorization, client_id), verifier)
    members = SqlAlchemyMemberRepository(session)
    try:
        client = await members.get_client(identity.subject)
        # Routers begin their own transaction on this session.
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("failed to resolve client identity")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error") from exc
    if client is None:
        raise _unauthorized("Invalid user")
    if not client.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return client.id


async def get_current_admin_id(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> str:
    identity = _verify(extract_token(authorization, None), verifier)
    if identity.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    members = SqlAlchemyMemberRepository(session)
    try:
        admin = await members.get_admin(identity.subject)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("failed to resolve admin identity")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error") from exc
    if admin is None:
        raise _unauthorized("Invalid user")
    if not admin.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return admin.id

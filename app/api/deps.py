"""Request dependencies that resolve the calling player and check their role."""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.errors import PermissionDeniedError
from app.core.security import decode_access_token
from app.models.models import Player

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _player_id_from_token(token: str) -> int:
    try:
        return int(decode_access_token(token)["sub"])
    except (JWTError, KeyError, ValueError, TypeError):
        raise _unauthorized()


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Player:
    player_id = _player_id_from_token(token)
    player = await db.get(Player, player_id)
    if player is None:
        # Token outlived the account
        raise _unauthorized()
    return player


async def require_admin(current_user: Player = Depends(get_current_user)) -> Player:
    if not current_user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return current_user


async def require_self_or_admin(
    player_id: int,
    current_user: Player = Depends(get_current_user),
) -> Player:
    """Guards routes keyed by a {player_id} path parameter."""
    if current_user.id != player_id and not current_user.is_admin:
        raise PermissionDeniedError("You can only change your own team")
    return current_user

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.database import get_db
from app.core.security import hash_password, verify_password, create_access_token
from app.core.config import get_settings
from app.models.models import Player
from app.schemas.auth import PlayerRegister, PlayerLogin, TokenResponse, PlayerResponse
from app.api.deps import get_current_user

router = APIRouter(prefix="/api/auth", tags=["Auth"])
settings = get_settings()


def _token_response(player: Player) -> TokenResponse:
    token = create_access_token({"sub": str(player.id), "is_admin": player.is_admin})
    return TokenResponse(
        access_token=token,
        player_id=player.id,
        name=player.name,
        is_admin=player.is_admin,
    )


async def _authenticate(db: AsyncSession, email: str, password: str) -> Player:
    result = await db.execute(select(Player).where(Player.email == email.lower()))
    player = result.scalar_one_or_none()
    if not player or not verify_password(password, player.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    return player


@router.post("/register", response_model=TokenResponse)
async def register(body: PlayerRegister, db: AsyncSession = Depends(get_db)):
    email = body.email.lower()
    existing = await db.execute(select(Player).where(Player.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    is_admin = body.admin_key is not None and body.admin_key == settings.admin_key

    player = Player(
        name=body.name,
        email=email,
        password_hash=hash_password(body.password),
        is_admin=is_admin,
    )
    db.add(player)
    await db.flush()
    await db.refresh(player)
    return _token_response(player)


@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    # OAuth2 form calls the field "username"; players log in with their email
    player = await _authenticate(db, form_data.username, form_data.password)
    return _token_response(player)


@router.post("/login/json", response_model=TokenResponse)
async def login_json(body: PlayerLogin, db: AsyncSession = Depends(get_db)):
    player = await _authenticate(db, body.email, body.password)
    return _token_response(player)


@router.get("/me", response_model=PlayerResponse)
async def me(current_user: Player = Depends(get_current_user)):
    return current_user

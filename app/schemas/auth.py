from pydantic import BaseModel, Field


class PlayerRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=6)
    admin_key: str | None = None


class PlayerLogin(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    player_id: int
    name: str
    is_admin: bool


class PlayerResponse(BaseModel):
    id: int
    name: str
    email: str
    is_admin: bool
    profile_image_url: str | None = None
    sole_survivor_id: int | None = None
    has_submitted_rankings: bool

    model_config = {"from_attributes": True}

from fastapi import APIRouter
from pydantic import BaseModel

from tracked_import.auth import authenticate, issue_token

router = APIRouter()


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    scopes: list[str]


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest) -> TokenResponse:
    principal = authenticate(data.username, data.password)
    token, expires_in = issue_token(principal)
    return TokenResponse(access_token=token, expires_in=expires_in, scopes=list(principal.scopes))

from typing import Optional
from fastapi import APIRouter, Depends, Response, status
from schemas.user_schema import LoginRequest, LogoutRequest, RefreshRequest, Token
from api.dependencies import get_current_user, get_token_service
from db.models.user import User as UserModel
from db.session import get_db_session
from services.token_service import TokenService
from services.user_service import login_user
from sqlalchemy.ext.asyncio import AsyncSession
from utils.responses import no_store_json

router = APIRouter()

@router.post("/sessions", response_model=Token)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
    token_service: TokenService = Depends(get_token_service),
):
    return no_store_json(await login_user(credentials.email, credentials.password, db, token_service))

@router.post("/refresh-token", response_model=Token)
async def refresh_token(payload: RefreshRequest, token_service: TokenService = Depends(get_token_service)):
    return no_store_json(await token_service.rotate(payload.refresh_token))

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    payload: Optional[LogoutRequest] = None,
    current_user: UserModel = Depends(get_current_user),
    token_service: TokenService = Depends(get_token_service),
):
    # without a refresh token every session of the user is ended
    token_value = payload.refresh_token if payload is not None else None
    await token_service.revoke(current_user.id, token_value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

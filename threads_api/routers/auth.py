from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from threads_api.database import get_db
from threads_api.schemas import LoginRequest, RegisterRequest, RegisterResponse, TokenResponse
from threads_api.security import TokenCodec, get_token_codec
from threads_api.services import user_service

# Neither route asks for an identity.
router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

@router.post("/register", status_code=201, response_model=RegisterResponse)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    message = await user_service.register(
        db, data.name, data.username, data.email, data.password
    )
    return RegisterResponse(message=message)

@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
):
    token = await user_service.login(db, codec, data.email, data.password)
    return TokenResponse(access_token=token)

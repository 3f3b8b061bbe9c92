from fastapi import APIRouter, Depends, status
from schemas.user_schema import User as UserSchema, UserCreate, UserCreatedResponse
from db.session import get_db_session
from sqlalchemy.ext.asyncio import AsyncSession
from services.user_service import create_user

router = APIRouter()

@router.post("/users", response_model=UserCreatedResponse, status_code=status.HTTP_201_CREATED)
async def signup(user: UserCreate, db: AsyncSession = Depends(get_db_session)):
    new_user = await create_user(user, db)
    return {"message": "User created successfully", "user": UserSchema.model_validate(new_user)}

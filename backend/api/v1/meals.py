from datetime import date
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, status
from schemas.meal_schema import Meal, MealCreate, MealList, MealResponse, MealUpdate, MealWriteResponse
from api.dependencies import get_current_user
from core.config import settings
from db.models.user import User as UserModel
from db.session import get_db_session
from services.meal_service import create_meal, delete_meal, get_meal, list_meals, parse_diet_filter, update_meal
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()

@router.get("/meals", response_model=MealList)
async def list_user_meals(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.MEALS_DEFAULT_PAGE_SIZE, ge=1, le=settings.MEALS_MAX_PAGE_SIZE),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    is_on_diet: Optional[str] = Query(None, description="'true' or 'false'; other values are ignored"),
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return await list_meals(
        current_user.id,
        db,
        page=page,
        limit=limit,
        date_from=date_from,
        date_to=date_to,
        is_on_diet=parse_diet_filter(is_on_diet),
    )

@router.post("/meals", response_model=MealWriteResponse, status_code=status.HTTP_201_CREATED)
async def create_user_meal(
    data: MealCreate,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    meal = await create_meal(data, current_user.id, db)
    return {"message": "Meal created successfully", "meal": Meal.model_validate(meal)}

@router.get("/meals/{meal_id}", response_model=MealResponse)
async def get_user_meal(
    meal_id: UUID,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    meal = await get_meal(str(meal_id), current_user.id, db)
    return {"meal": Meal.model_validate(meal)}

@router.put("/meals/{meal_id}", response_model=MealWriteResponse)
async def update_user_meal(
    meal_id: UUID,
    data: MealUpdate,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    meal = await update_meal(str(meal_id), data, current_user.id, db)
    return {"message": "Meal updated successfully", "meal": Meal.model_validate(meal)}

@router.delete("/meals/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user_meal(
    meal_id: UUID,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await delete_meal(str(meal_id), current_user.id, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

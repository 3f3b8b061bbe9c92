import math
from datetime import date, datetime, time, timezone
from typing import Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import AppError
from db.models.meal import Meal as MealModel
from schemas.meal_schema import Meal, MealCreate, MealUpdate
from utils.db import safe_commit
from utils.timing import timeit

logger = logging.getLogger(__name__)


def parse_diet_filter(value: Optional[str]) -> Optional[bool]:
    """'true'/'false' become a filter; anything else means no filter."""
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    return None


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _day_end(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


async def create_meal(data: MealCreate, user_id: str, db: AsyncSession) -> MealModel:
    meal = MealModel(
        user_id=user_id,
        name=data.name,
        description=data.description,
        datetime=data.datetime,
        is_on_diet=data.is_on_diet,
    )
    db.add(meal)
    await safe_commit(db, conflict_message="Invalid meal data")
    await db.refresh(meal)
    logger.info(f"Meal created successfully: {meal.id} (user {user_id})")
    return meal


@timeit("list_meals")
async def list_meals(
    user_id: str,
    db: AsyncSession,
    page: int = 1,
    limit: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    is_on_diet: Optional[bool] = None,
) -> dict:
    """One page of the user's meals, newest first, with pagination info"""
    limit = limit or settings.MEALS_DEFAULT_PAGE_SIZE
    safe_limit = min(max(1, limit), settings.MEALS_MAX_PAGE_SIZE)
    safe_page = max(1, page)

    conditions = [MealModel.user_id == user_id]
    if date_from is not None:
        conditions.append(MealModel.datetime >= _day_start(date_from))
    if date_to is not None:
        conditions.append(MealModel.datetime <= _day_end(date_to))
    if is_on_diet is not None:
        conditions.append(MealModel.is_on_diet.is_(is_on_diet))

    total = (await db.execute(select(func.count()).select_from(MealModel).where(*conditions))).scalar_one()
    result = await db.execute(
        select(MealModel)
        .where(*conditions)
        .order_by(MealModel.datetime.desc(), MealModel.created_at.desc())
        .offset((safe_page - 1) * safe_limit)
        .limit(safe_limit)
    )
    meals = result.scalars().all()
    total_pages = math.ceil(total / safe_limit)

    logger.info(
        f"Meals listed for user {user_id}: page={safe_page} limit={safe_limit} total={total} "
        f"filters=(date_from={date_from}, date_to={date_to}, is_on_diet={is_on_diet})"
    )
    return {
        "data": [Meal.model_validate(m) for m in meals],
        "pagination": {
            "page": safe_page,
            "limit": safe_limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": safe_page < total_pages,
            "hasPrev": safe_page > 1,
        },
    }


async def get_meal(meal_id: str, user_id: str, db: AsyncSession) -> MealModel:
    """Fetch a meal owned by ``user_id``.

    A meal that belongs to someone else is reported exactly like a missing
    one, so ids of other users' meals cannot be probed.
    """
    result = await db.execute(select(MealModel).where(MealModel.id == meal_id))
    meal = result.scalars().first()
    if meal is None:
        logger.warning(f"Meal not found: {meal_id} (user {user_id})")
        raise AppError.not_found("Meal")
    if meal.user_id != user_id:
        logger.warning(f"Meal ownership check failed: {meal_id} (user {user_id}, owner {meal.user_id})")
        raise AppError.not_found("Meal")
    return meal


async def update_meal(meal_id: str, data: MealUpdate, user_id: str, db: AsyncSession) -> MealModel:
    meal = await get_meal(meal_id, user_id, db)
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return meal

    for field, value in changes.items():
        setattr(meal, field, value)
    await safe_commit(db, conflict_message="Invalid meal data")
    await db.refresh(meal)
    logger.info(f"Meal updated successfully: {meal_id} (user {user_id}) fields={sorted(changes)}")
    return meal


async def delete_meal(meal_id: str, user_id: str, db: AsyncSession) -> None:
    meal = await get_meal(meal_id, user_id, db)
    await db.delete(meal)
    await safe_commit(db)
    logger.info(f"Meal deleted successfully: {meal_id} (user {user_id})")

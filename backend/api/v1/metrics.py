from fastapi import APIRouter, Depends
from schemas.metrics_schema import Metrics
from api.dependencies import get_current_user, get_meal_store
from db.models.user import User as UserModel
from db.stores import SqlMealStore
from services.metrics_service import get_metrics

router = APIRouter()

@router.get("/metrics", response_model=Metrics)
async def read_metrics(
    current_user: UserModel = Depends(get_current_user),
    meal_store: SqlMealStore = Depends(get_meal_store),
):
    return await get_metrics(current_user.id, meal_store)

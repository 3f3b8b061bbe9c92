import logging

from db.stores import MealStore
from utils.streak import calculate_best_streak
from utils.timing import timeit

logger = logging.getLogger(__name__)


@timeit("get_metrics")
async def get_metrics(user_id: str, meal_store: MealStore) -> dict:
    """Totals and best on-diet streak over all of the user's meals"""
    flags = await meal_store.list_diet_flags(user_id)
    total_meals = len(flags)
    total_on_diet = sum(1 for flag in flags if flag)
    metrics = {
        "total_meals": total_meals,
        "total_on_diet": total_on_diet,
        "total_off_diet": total_meals - total_on_diet,
        "best_streak": calculate_best_streak(flags),
    }
    logger.info(f"Metrics calculated for user {user_id}: {metrics}")
    return metrics

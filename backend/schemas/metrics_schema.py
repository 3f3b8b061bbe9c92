from pydantic import BaseModel


class Metrics(BaseModel):
    total_meals: int
    total_on_diet: int
    total_off_diet: int
    best_streak: int

import datetime as dt
from pydantic import BaseModel, Field, StrictBool, field_validator
from typing import List, Optional


class MealCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    datetime: dt.datetime
    is_on_diet: StrictBool


class MealUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    datetime: Optional[dt.datetime] = None
    is_on_diet: Optional[StrictBool] = None

    @field_validator("name", "datetime", "is_on_diet")
    @classmethod
    def not_null(cls, v):
        # description may be cleared with null, the required columns may not
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class Meal(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    datetime: dt.datetime
    is_on_diet: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class MealResponse(BaseModel):
    meal: Meal


class MealWriteResponse(BaseModel):
    message: str
    meal: Meal


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


class MealList(BaseModel):
    data: List[Meal]
    pagination: Pagination

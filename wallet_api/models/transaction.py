from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

INCOME_CATEGORY = "Income"

# Largest amount a single transaction may carry. Amounts are stored to the cent.
MAX_AMOUNT = 1_000_000_000_000

EXPENSE_CATEGORIES = (
    "Main expenses",
    "Products",
    "Car",
    "Self care",
    "Child care",
    "Household products",
    "Education",
    "Leisure",
    "Other expenses",
    "Entertainment",
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _to_cents(amount: Optional[float]) -> Optional[float]:
    if amount is None:
        return None
    return round(amount, 2)


class TransactionCreate(_CamelModel):
    amount: float = Field(le=MAX_AMOUNT, allow_inf_nan=False)
    category: Optional[str] = None
    date: str
    is_income: bool
    comment: Optional[str] = Field(default=None, max_length=500)

    round_amount = field_validator("amount")(_to_cents)


class TransactionUpdate(_CamelModel):
    amount: Optional[float] = Field(default=None, le=MAX_AMOUNT, allow_inf_nan=False)
    category: Optional[str] = None
    date: Optional[str] = None
    is_income: Optional[bool] = None
    comment: Optional[str] = Field(default=None, max_length=500)

    round_amount = field_validator("amount")(_to_cents)


class TransactionPublic(_CamelModel):
    transaction_id: str = Field(alias="id")
    user_id: str = Field(alias="user")
    amount: float
    category: str
    date: str
    is_income: bool
    comment: Optional[str] = None
    created_at: str
    updated_at: str


class CategoryTotalPublic(_CamelModel):
    category: str
    total: float
    transaction_count: int


class CategoryTotals(_CamelModel):
    categories: List[CategoryTotalPublic]
    income: float
    expense: float
    difference: float
    month: Optional[int] = None
    year: Optional[int] = None

"""Pydantic schemas for serialising Spendwise payloads."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Annotated, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

# Stored as an exact decimal, rendered as a JSON number.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def _check_email(value: str) -> str:
    # Syntax check only; the address is kept exactly as submitted.
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(f"value is not a valid email address: {exc}") from exc
    return value


Email = Annotated[str, AfterValidator(_check_email)]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class RegisterRequest(BaseModel):
    email: Email
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(..., min_length=1)


class UserRead(ORMModel):
    id: str
    email: str
    created_at: dt.datetime


class RegisterResponse(BaseModel):
    message: str = "User created successfully"
    user: UserRead


class LoginResponse(BaseModel):
    message: str = "Login successful"
    token: str
    user: UserRead


class ExpenseBase(BaseModel):
    amount: Money
    category: str
    date: dt.date
    description: Optional[str] = None


class ExpenseCreate(ExpenseBase):
    pass


class ExpenseUpdate(BaseModel):
    """Partial update; absent or null fields keep their stored value."""

    amount: Optional[Money] = None
    category: Optional[str] = None
    date: Optional[dt.date] = None
    description: Optional[str] = None

    def changes(self) -> dict[str, object]:
        return {key: value for key, value in self.model_dump(exclude_unset=True).items() if value is not None}


class ExpenseRead(ExpenseBase, ORMModel):
    id: str
    user_id: str
    created_at: dt.datetime


class ExpenseCreated(BaseModel):
    message: str = "Expense created successfully"
    expense: ExpenseRead


class CategoryTotal(BaseModel):
    category: str
    total: Money
    count: int


class MonthlyTotal(BaseModel):
    month: str
    total: Money


class AnalyticsRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: Money
    category_breakdown: List[CategoryTotal] = Field(default_factory=list, alias="categoryBreakdown")
    monthly_spending: List[MonthlyTotal] = Field(default_factory=list, alias="monthlySpending")
    recent_expenses: List[ExpenseRead] = Field(default_factory=list, alias="recentExpenses")


class HealthRead(BaseModel):
    status: str = "ok"

"""Expense repository scoped by the owning user."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List

from sqlalchemy import String, cast, func, select
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import NotFound

LOG = logging.getLogger(__name__)

MONTHS_IN_ANALYTICS = 6
RECENT_EXPENSES_LIMIT = 10


class ExpenseRepository:
    """Create, read, update and delete expenses of a single user.

    Every query filters on ``user_id``; an expense owned by someone else is
    reported exactly like a missing one.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_expenses(self, user_id: str) -> List[models.Expense]:
        stmt = (
            select(models.Expense)
            .where(models.Expense.user_id == user_id)
            .order_by(models.Expense.date.desc(), models.Expense.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    def get_expense(self, user_id: str, expense_id: str) -> models.Expense:
        stmt = select(models.Expense).where(
            models.Expense.id == expense_id,
            models.Expense.user_id == user_id,
        )
        expense = self.session.scalars(stmt).first()
        if expense is None:
            LOG.debug("Expense %s not found for user %s", expense_id, user_id)
            raise NotFound()
        return expense

    def create_expense(self, user_id: str, expense_in: schemas.ExpenseCreate) -> models.Expense:
        data = expense_in.model_dump()
        if data["description"] is None:
            data["description"] = ""
        expense = models.Expense(user_id=user_id, **data)
        self.session.add(expense)
        self.session.flush()
        self.session.refresh(expense)
        return expense

    def update_expense(self, user_id: str, expense_id: str, update_in: schemas.ExpenseUpdate) -> models.Expense:
        expense = self.get_expense(user_id, expense_id)
        for field, value in update_in.changes().items():
            setattr(expense, field, value)
        self.session.flush()
        self.session.refresh(expense)
        return expense

    def delete_expense(self, user_id: str, expense_id: str) -> None:
        expense = self.get_expense(user_id, expense_id)
        self.session.delete(expense)
        self.session.flush()

    def analytics(self, user_id: str) -> schemas.AnalyticsRead:
        """Summarise the user's spending.

        Returns:
          Grand total, per-category totals (largest first), totals for the
          six most recent active months in ascending order and the ten most
          recently created expenses.
        """

        owned = models.Expense.user_id == user_id

        total_stmt = select(func.coalesce(func.sum(models.Expense.amount), 0)).where(owned)
        total_value = self.session.scalar(total_stmt) or Decimal(0)

        category_total = func.sum(models.Expense.amount).label("total")
        by_category_stmt = (
            select(
                models.Expense.category,
                category_total,
                func.count(models.Expense.id).label("expense_count"),
            )
            .where(owned)
            .group_by(models.Expense.category)
            .order_by(category_total.desc(), models.Expense.category)
        )
        category_breakdown = [
            schemas.CategoryTotal(category=row.category, total=row.total, count=row.expense_count)
            for row in self.session.execute(by_category_stmt)
        ]

        month = func.substr(cast(models.Expense.date, String), 1, 7).label("month")
        monthly_stmt = (
            select(month, func.sum(models.Expense.amount).label("total"))
            .where(owned)
            .group_by(month)
            .order_by(month.desc())
            .limit(MONTHS_IN_ANALYTICS)
        )
        monthly_spending = [
            schemas.MonthlyTotal(month=row.month, total=row.total)
            for row in self.session.execute(monthly_stmt)
        ]
        monthly_spending.reverse()

        recent_stmt = (
            select(models.Expense)
            .where(owned)
            .order_by(models.Expense.created_at.desc())
            .limit(RECENT_EXPENSES_LIMIT)
        )
        recent_expenses = [schemas.ExpenseRead.model_validate(expense) for expense in self.session.scalars(recent_stmt)]

        return schemas.AnalyticsRead(
            total=total_value,
            category_breakdown=category_breakdown,
            monthly_spending=monthly_spending,
            recent_expenses=recent_expenses,
        )


__all__ = ["ExpenseRepository", "MONTHS_IN_ANALYTICS", "RECENT_EXPENSES_LIMIT"]

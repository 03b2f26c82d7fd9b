"""
Response shapes shared by the routers and the ledger service.
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlmodel import SQLModel

from .models.category import Category
from .models.expense import Expense


class CategoryBrief(SQLModel):
    id: uuid.UUID
    name: str
    color: str
    icon: Optional[str] = None


class CategoryRead(CategoryBrief):
    created_at: datetime
    updated_at: datetime


class ExpenseRead(SQLModel):
    """An expense with its raw category reference."""

    id: uuid.UUID
    user_id: uuid.UUID
    amount: float
    description: str
    category_id: uuid.UUID
    expense_date: date
    receipt_path: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExpenseDetail(ExpenseRead):
    """An expense whose category reference has been resolved."""

    category: CategoryBrief


def category_brief(category: Category) -> CategoryBrief:
    return CategoryBrief(
        id=category.id,
        name=category.name,
        color=category.color,
        icon=category.icon,
    )


def category_read(category: Category) -> CategoryRead:
    return CategoryRead(
        id=category.id,
        name=category.name,
        color=category.color,
        icon=category.icon,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def expense_read(expense: Expense) -> ExpenseRead:
    return ExpenseRead(
        id=expense.id,
        user_id=expense.user_id,
        amount=float(expense.amount),
        description=expense.description,
        category_id=expense.category_id,
        expense_date=expense.expense_date,
        receipt_path=expense.receipt_path,
        created_at=expense.created_at,
        updated_at=expense.updated_at,
    )


def expense_detail(expense: Expense, category: Category) -> ExpenseDetail:
    return ExpenseDetail(
        **expense_read(expense).model_dump(),
        category=category_brief(category),
    )


class CategoryBreakdownItem(SQLModel):
    category: CategoryBrief
    total_amount: float
    transaction_count: int
    percentage: int


class LedgerSummary(SQLModel):
    total_expenses: float
    window_start: date
    window_end: date
    window_expenses: float
    category_breakdown: List[CategoryBreakdownItem]
    recent_transactions: List[ExpenseDetail]


class CategoryStat(SQLModel):
    id: uuid.UUID
    name: str
    color: str
    icon: Optional[str] = None
    total: float
    count: int


class DailyStat(SQLModel):
    date: str
    total: float
    count: int


class PeriodStats(SQLModel):
    period: str
    start_date: date
    end_date: date
    total_amount: float
    total_count: int
    average_per_day: float
    by_category: List[CategoryStat]
    daily: List[DailyStat]


class Pagination(SQLModel):
    current_page: int
    total_pages: int
    total_expenses: int
    has_next_page: bool
    has_prev_page: bool


class ExpenseListSummary(SQLModel):
    total_amount: float
    average_amount: float


class ExpensePage(SQLModel):
    expenses: List[ExpenseDetail]
    pagination: Pagination
    summary: ExpenseListSummary

"""
Owner-scoped expense aggregation: dashboard summary, period statistics and
the paginated expense listing.

Every query here filters on ``user_id``; nothing in this module may read
another user's rows.
"""

import calendar
import logging
import math
import uuid
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func
from sqlmodel import Session, select

from ..errors import InvalidInput
from ..models.category import Category
from ..models.expense import Expense
from ..schemas import (
    CategoryBreakdownItem,
    CategoryStat,
    DailyStat,
    ExpenseDetail,
    ExpenseListSummary,
    ExpensePage,
    LedgerSummary,
    Pagination,
    PeriodStats,
    category_brief,
    expense_detail,
)


logger = logging.getLogger(__name__)

RECENT_LIMIT = 5
PERIODS = ("week", "month", "year")

_ZERO = Decimal("0")
_CENTS = Decimal("0.01")


def month_window(today: date) -> Tuple[date, date]:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return date(today.year, today.month, 1), date(today.year, today.month, last_day)


def period_window(period: str, today: date) -> Tuple[date, date]:
    if period == "week":
        return today - timedelta(days=6), today
    if period == "month":
        return date(today.year, today.month, 1), today
    if period == "year":
        return date(today.year, 1, 1), today
    raise InvalidInput(f"Invalid period '{period}'. Use one of: {', '.join(PERIODS)}")


def percentage(part: Decimal, whole: Decimal) -> int:
    """Share of ``whole`` in percent, rounded half up; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    share = Decimal(part) * 100 / Decimal(whole)
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _money(value: Optional[Decimal]) -> Decimal:
    if value is None:
        return _ZERO
    return Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


def _owned_category_join():
    # Inner join: expenses whose category is gone (or not the owner's) drop out
    return and_(Category.id == Expense.category_id, Category.user_id == Expense.user_id)


def _sum_amount(session: Session, *conditions) -> Decimal:
    stmt = select(func.sum(Expense.amount)).where(*conditions)
    return _money(session.exec(stmt).one())


def recent_order():
    return (Expense.expense_date.desc(), Expense.created_at.desc())


def resolve_expenses(
    session: Session,
    user_id: uuid.UUID,
    expenses: Iterable[Expense],
) -> List[ExpenseDetail]:
    """Attach each expense's category, keeping input order.

    Expenses whose category cannot be found among the owner's categories are
    left out.
    """
    expenses = list(expenses)
    category_ids = {e.category_id for e in expenses}
    categories: Dict[uuid.UUID, Category] = {}
    if category_ids:
        stmt = select(Category).where(
            Category.user_id == user_id,
            Category.id.in_(list(category_ids)),
        )
        categories = {c.id: c for c in session.exec(stmt).all()}

    resolved = []
    for expense in expenses:
        category = categories.get(expense.category_id)
        if category is None:
            logger.warning(
                "Expense %s references missing category %s", expense.id, expense.category_id
            )
            continue
        resolved.append(expense_detail(expense, category))
    return resolved


def summarize(
    session: Session,
    user_id: uuid.UUID,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> LedgerSummary:
    today = today or date.today()
    default_start, default_end = month_window(today)
    start = start or default_start
    end = end or default_end
    if start > end:
        raise InvalidInput("start_date must not be after end_date")

    owned = Expense.user_id == user_id
    in_window = and_(owned, Expense.expense_date >= start, Expense.expense_date <= end)

    total_all_time = _sum_amount(session, owned)
    window_total = _sum_amount(session, in_window)

    total_col = func.sum(Expense.amount).label("total_amount")
    breakdown_stmt = (
        select(Category, total_col, func.count(Expense.id).label("transaction_count"))
        .select_from(Expense)
        .join(Category, _owned_category_join())
        .where(in_window)
        .group_by(Category.id)
        .order_by(total_col.desc())
    )
    breakdown = [
        CategoryBreakdownItem(
            category=category_brief(category),
            total_amount=float(_money(total)),
            transaction_count=count,
            percentage=percentage(_money(total), window_total),
        )
        for category, total, count in session.exec(breakdown_stmt).all()
    ]

    recent_stmt = select(Expense).where(owned).order_by(*recent_order()).limit(RECENT_LIMIT)
    recent = resolve_expenses(session, user_id, session.exec(recent_stmt).all())

    return LedgerSummary(
        total_expenses=float(total_all_time),
        window_start=start,
        window_end=end,
        window_expenses=float(window_total),
        category_breakdown=breakdown,
        recent_transactions=recent,
    )


def period_stats(
    session: Session,
    user_id: uuid.UUID,
    period: str = "month",
    today: Optional[date] = None,
) -> PeriodStats:
    today = today or date.today()
    start, end = period_window(period, today)

    in_window = and_(
        Expense.user_id == user_id,
        Expense.expense_date >= start,
        Expense.expense_date <= end,
    )

    totals_stmt = select(func.sum(Expense.amount), func.count(Expense.id)).where(in_window)
    total, count = session.exec(totals_stmt).one()
    total = _money(total)

    total_col = func.sum(Expense.amount).label("total")
    by_category_stmt = (
        select(Category, total_col, func.count(Expense.id).label("count"))
        .select_from(Expense)
        .join(Category, _owned_category_join())
        .where(in_window)
        .group_by(Category.id)
        .order_by(total_col.desc())
    )
    by_category = [
        CategoryStat(
            id=category.id,
            name=category.name,
            color=category.color,
            icon=category.icon,
            total=float(_money(cat_total)),
            count=cat_count,
        )
        for category, cat_total, cat_count in session.exec(by_category_stmt).all()
    ]

    daily_stmt = (
        select(Expense.expense_date, func.sum(Expense.amount), func.count(Expense.id))
        .where(in_window)
        .group_by(Expense.expense_date)
        .order_by(Expense.expense_date)
    )
    daily = [
        DailyStat(date=day.isoformat(), total=float(_money(day_total)), count=day_count)
        for day, day_total, day_count in session.exec(daily_stmt).all()
    ]

    elapsed_days = (today - start).days + 1 if start <= today else 0
    average = _money(total / elapsed_days) if elapsed_days > 0 else _ZERO

    return PeriodStats(
        period=period,
        start_date=start,
        end_date=end,
        total_amount=float(total),
        total_count=count or 0,
        average_per_day=float(average),
        by_category=by_category,
        daily=daily,
    )


def list_expenses(
    session: Session,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = 10,
    category_id: Optional[uuid.UUID] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> ExpensePage:
    if page < 1 or limit < 1:
        raise InvalidInput("page and limit must be positive")

    conditions = [Expense.user_id == user_id]
    if category_id is not None:
        conditions.append(Expense.category_id == category_id)
    if start is not None:
        conditions.append(Expense.expense_date >= start)
    if end is not None:
        conditions.append(Expense.expense_date <= end)

    stmt = (
        select(Expense)
        .where(*conditions)
        .order_by(*recent_order())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    expenses = resolve_expenses(session, user_id, session.exec(stmt).all())

    total_count = session.exec(select(func.count(Expense.id)).where(*conditions)).one()
    total_amount = _sum_amount(session, *conditions)
    total_pages = math.ceil(total_count / limit)

    return ExpensePage(
        expenses=expenses,
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_expenses=total_count,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
        summary=ExpenseListSummary(
            total_amount=float(total_amount),
            average_amount=float(_money(total_amount / total_count)) if total_count else 0.0,
        ),
    )

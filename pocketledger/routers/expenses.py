import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlmodel import Session, select

from ..core.security import get_current_user
from ..core.storage import ReceiptStorage, get_receipt_storage
from ..database import get_session
from ..errors import InternalError, InvalidInput, NotFound
from ..models.base import utcnow
from ..models.expense import Expense
from ..models.user import User
from ..schemas import ExpenseDetail, ExpensePage, LedgerSummary, PeriodStats
from ..services import ledger
from .categories import get_owned_category


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/expenses",
    tags=["expenses"],
)

AMOUNT_MAX_DIGITS = 12
AMOUNT_DECIMALS = 2
DESCRIPTION_MAX = 200


# ─────────────────────────────
#   HELPERS
# ─────────────────────────────

def _clean_amount(amount: Decimal) -> Decimal:
    if amount <= 0:
        raise InvalidInput("Amount must be a positive number")
    if amount.as_tuple().exponent < -AMOUNT_DECIMALS:
        raise InvalidInput("Amount cannot have more than 2 decimal places")
    if amount >= Decimal(10) ** (AMOUNT_MAX_DIGITS - AMOUNT_DECIMALS):
        raise InvalidInput("Amount is too large")
    return amount.quantize(Decimal("0.01"))


def _clean_description(description: str) -> str:
    description = (description or "").strip()
    if not description:
        raise InvalidInput("Description is required")
    if len(description) > DESCRIPTION_MAX:
        raise InvalidInput(f"Description cannot exceed {DESCRIPTION_MAX} characters")
    return description


def _get_owned_expense(session: Session, user_id: uuid.UUID, expense_id: uuid.UUID) -> Expense:
    expense = session.exec(
        select(Expense).where(Expense.id == expense_id, Expense.user_id == user_id)
    ).first()
    if expense is None:
        raise NotFound("Expense not found")
    return expense


def _detail(session: Session, user_id: uuid.UUID, expense: Expense) -> ExpenseDetail:
    resolved = ledger.resolve_expenses(session, user_id, [expense])
    if not resolved:
        raise InternalError("Failed to resolve category information")
    return resolved[0]


def _commit_or_discard(session: Session, storage: ReceiptStorage, new_receipt: Optional[str]) -> None:
    """Commit, removing a just-written receipt if the record never lands."""
    try:
        session.commit()
    except Exception:
        session.rollback()
        if new_receipt:
            storage.delete(new_receipt)
        raise


def _has_file(receipt: Optional[UploadFile]) -> bool:
    # Browsers send an empty part with no filename when no file is picked
    return receipt is not None and bool(receipt.filename)


# ─────────────────────────────
#   AGGREGATES
# ─────────────────────────────

@router.get(
    "/summary",
    response_model=LedgerSummary,
)
def get_summary(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """All-time and window totals, per-category breakdown and recent activity.

    The window defaults to the current calendar month.
    """
    return ledger.summarize(session, current_user.id, start=start_date, end=end_date)


@router.get(
    "/stats",
    response_model=PeriodStats,
)
def get_stats(
    period: str = Query("month"),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return ledger.period_stats(session, current_user.id, period=period)


# ─────────────────────────────
#   CRUD
# ─────────────────────────────

@router.get(
    "",
    response_model=ExpensePage,
)
def list_expenses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    List the authenticated user's expenses, newest first.

    - category_id may be "all" (no filter).
    - Ordered by expense date, then creation time, both descending.
    """
    category_filter = None
    if category_id and category_id != "all":
        try:
            category_filter = uuid.UUID(category_id)
        except ValueError:
            raise InvalidInput("Invalid category ID")

    return ledger.list_expenses(
        session,
        current_user.id,
        page=page,
        limit=limit,
        category_id=category_filter,
        start=start_date,
        end=end_date,
    )


@router.post(
    "",
    response_model=ExpenseDetail,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    amount: Decimal = Form(...),
    description: str = Form(...),
    category_id: uuid.UUID = Form(...),
    expense_date: Optional[date] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    storage: ReceiptStorage = Depends(get_receipt_storage),
):
    """
    Create an expense for the authenticated user, optionally with a receipt photo.

    - The category must belong to the same user.
    """
    amount = _clean_amount(amount)
    description = _clean_description(description)
    get_owned_category(session, current_user.id, category_id)

    receipt_path = None
    if _has_file(receipt):
        receipt_path = storage.save_upload(current_user.id, receipt)

    now = utcnow()
    expense = Expense(
        id=uuid.uuid4(),
        user_id=current_user.id,
        amount=amount,
        description=description,
        category_id=category_id,
        expense_date=expense_date or date.today(),
        receipt_path=receipt_path,
        created_at=now,
        updated_at=now,
    )

    session.add(expense)
    _commit_or_discard(session, storage, receipt_path)
    session.refresh(expense)
    logger.info("Created expense %s for user %s", expense.id, current_user.id)
    return _detail(session, current_user.id, expense)


@router.get(
    "/{expense_id}",
    response_model=ExpenseDetail,
)
def get_expense(
    expense_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    expense = _get_owned_expense(session, current_user.id, expense_id)
    return _detail(session, current_user.id, expense)


@router.put(
    "/{expense_id}",
    response_model=ExpenseDetail,
)
def update_expense(
    expense_id: uuid.UUID,
    amount: Optional[Decimal] = Form(None),
    description: Optional[str] = Form(None),
    category_id: Optional[uuid.UUID] = Form(None),
    expense_date: Optional[date] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    storage: ReceiptStorage = Depends(get_receipt_storage),
):
    """Partially update an expense; a new receipt replaces the previous file."""
    expense = _get_owned_expense(session, current_user.id, expense_id)

    if amount is not None:
        expense.amount = _clean_amount(amount)
    if description is not None:
        expense.description = _clean_description(description)
    if category_id is not None:
        get_owned_category(session, current_user.id, category_id)
        expense.category_id = category_id
    if expense_date is not None:
        expense.expense_date = expense_date

    old_receipt = None
    new_receipt = None
    if _has_file(receipt):
        old_receipt = expense.receipt_path
        new_receipt = storage.save_upload(current_user.id, receipt)
        expense.receipt_path = new_receipt

    expense.updated_at = utcnow()
    session.add(expense)
    _commit_or_discard(session, storage, new_receipt)
    session.refresh(expense)

    # The record is already committed; a stale file left behind is acceptable
    if old_receipt:
        storage.delete(old_receipt)

    return _detail(session, current_user.id, expense)


@router.delete(
    "/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_expense(
    expense_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    storage: ReceiptStorage = Depends(get_receipt_storage),
):
    """Delete the expense and, best effort, its receipt photo."""
    expense = _get_owned_expense(session, current_user.id, expense_id)
    receipt_path = expense.receipt_path

    session.delete(expense)
    session.commit()

    if receipt_path:
        storage.delete(receipt_path)
    return None

import re
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, Field, Session, select

from ..core.security import get_current_user
from ..database import get_session
from ..errors import Conflict, NotFound
from ..models.base import utcnow
from ..models.category import Category
from ..models.expense import Expense
from ..models.user import User
from ..schemas import CategoryRead, category_read


router = APIRouter(
    prefix="/categories",
    tags=["categories"],
)

HEX_COLOR = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


class CategoryIn(SQLModel):
    name: str = Field(min_length=1, max_length=50)
    color: str = Field(min_length=4, max_length=7)
    icon: Optional[str] = Field(default=None, max_length=16)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str) -> str:
        if not HEX_COLOR.match(v):
            raise ValueError("Please enter a valid hex color")
        return v


def get_owned_category(session: Session, user_id: uuid.UUID, category_id: uuid.UUID) -> Category:
    category = session.exec(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    ).first()
    if category is None:
        raise NotFound("Category not found")
    return category


def _ensure_name_free(
    session: Session,
    user_id: uuid.UUID,
    name: str,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    stmt = select(Category).where(Category.user_id == user_id, Category.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    if session.exec(stmt).first() is not None:
        raise Conflict("Category with this name already exists")


def _commit_category(session: Session, category: Category) -> Category:
    session.add(category)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race against a concurrent write of the same (user, name)
        session.rollback()
        raise Conflict("Category with this name already exists")
    session.refresh(category)
    return category


@router.get(
    "",
    response_model=List[CategoryRead],
    status_code=status.HTTP_200_OK,
)
def list_categories(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = (
        select(Category)
        .where(Category.user_id == current_user.id)
        .order_by(Category.created_at.desc())
    )
    return [category_read(c) for c in session.exec(stmt).all()]


@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    payload: CategoryIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    _ensure_name_free(session, current_user.id, payload.name)

    now = utcnow()
    category = Category(
        id=uuid.uuid4(),
        user_id=current_user.id,
        name=payload.name,
        color=payload.color,
        icon=payload.icon,
        created_at=now,
        updated_at=now,
    )
    return category_read(_commit_category(session, category))


@router.get(
    "/{category_id}",
    response_model=CategoryRead,
)
def get_category(
    category_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return category_read(get_owned_category(session, current_user.id, category_id))


@router.put(
    "/{category_id}",
    response_model=CategoryRead,
)
def update_category(
    category_id: uuid.UUID,
    payload: CategoryIn,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    category = get_owned_category(session, current_user.id, category_id)
    _ensure_name_free(session, current_user.id, payload.name, exclude_id=category.id)

    category.name = payload.name
    category.color = payload.color
    # an explicit null clears the icon; omitting the field keeps it
    if "icon" in payload.model_fields_set:
        category.icon = payload.icon
    category.updated_at = utcnow()
    return category_read(_commit_category(session, category))


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_category(
    category_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Delete a category that no expense uses.

    Categories still referenced by expenses are refused with 409 so that
    expenses never point at a missing category.
    """
    category = get_owned_category(session, current_user.id, category_id)

    in_use = session.exec(
        select(func.count(Expense.id)).where(
            Expense.user_id == current_user.id,
            Expense.category_id == category.id,
        )
    ).one()
    if in_use:
        raise Conflict(
            f"Category is used by {in_use} expense(s). Reassign or delete them first."
        )

    session.delete(category)
    session.commit()
    return None

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Path, status

from wallet_api.core.security import AuthenticatedUser, get_current_user
from wallet_api.db import dynamo
from wallet_api.models.transaction import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORY,
    CategoryTotals,
    TransactionCreate,
    TransactionPublic,
    TransactionUpdate,
)
from wallet_api.utils.analyzer import TransactionAnalyzer
from wallet_api.utils.date_utils import month_prefix, normalize_date, sort_key

router = APIRouter()
logger = logging.getLogger(__name__)
transaction_analyzer = TransactionAnalyzer()


def _check_amount(amount: float) -> None:
    if amount <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The amount must be positive")


def _check_date(value: str) -> str:
    formatted = normalize_date(value)
    if formatted is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date format")
    return formatted


def _resolve_category(category: Optional[str], is_income: bool) -> str:
    """Income is always filed under "Income"; expenses need a known category."""
    if is_income:
        return INCOME_CATEGORY
    if category not in EXPENSE_CATEGORIES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid category")
    return category


def _owned_transaction(transaction_id: str, user_id: str) -> dict:
    transaction = dynamo.get_transaction(transaction_id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found or already deleted")
    if transaction["user_id"] != user_id:
        logger.warning(f"User {user_id} tried to modify transaction {transaction_id} they do not own")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized")
    return transaction


@router.post("", response_model=TransactionPublic, status_code=status.HTTP_201_CREATED)
def create_transaction(transaction: TransactionCreate, current: AuthenticatedUser = Depends(get_current_user)):
    _check_amount(transaction.amount)
    formatted_date = _check_date(transaction.date)
    category = _resolve_category(transaction.category, transaction.is_income)

    now = datetime.now(timezone.utc).isoformat()
    item = {
        "transaction_id": str(uuid4()),
        "user_id": current.user_id,
        "amount": transaction.amount,
        "category": category,
        "date": formatted_date,
        "sort_date": sort_key(formatted_date),
        "is_income": transaction.is_income,
        "comment": transaction.comment,
        "created_at": now,
        "updated_at": now,
    }
    if not dynamo.put_transaction(item):
        raise HTTPException(status_code=500, detail="Failed to save transaction")

    logger.info(f"Transaction {item['transaction_id']} created for user {current.user_id}")
    return TransactionPublic(**item)


@router.get("/categories/totals", response_model=CategoryTotals, response_model_exclude_none=True)
def category_totals(current: AuthenticatedUser = Depends(get_current_user)):
    """All-time per-category spend plus income, expense and their difference."""
    transactions = dynamo.get_transactions_for_user(current.user_id)
    return transaction_analyzer.summarize(transactions)


@router.get(
    "/categories/totals/{month}/{year}",
    response_model=CategoryTotals,
    response_model_exclude_none=True,
)
def filtered_category_totals(
    month: int = Path(ge=1, le=12),
    year: int = Path(ge=1, le=9999),
    current: AuthenticatedUser = Depends(get_current_user),
):
    transactions = dynamo.get_transactions_for_user(current.user_id, month_prefix(month, year))
    summary = transaction_analyzer.summarize(transactions)
    summary.update({"month": month, "year": year})
    return summary


@router.get("/{month}/{year}", response_model=List[TransactionPublic])
def filter_transactions(
    month: int = Path(ge=1, le=12),
    year: int = Path(ge=1, le=9999),
    current: AuthenticatedUser = Depends(get_current_user),
):
    """Transactions dated in the given month, oldest first."""
    transactions = dynamo.get_transactions_for_user(current.user_id, month_prefix(month, year))
    return [TransactionPublic(**item) for item in transactions]


@router.delete("/{transaction_id}")
def delete_transaction(transaction_id: str, current: AuthenticatedUser = Depends(get_current_user)):
    _owned_transaction(transaction_id, current.user_id)

    if not dynamo.delete_transaction(transaction_id):
        raise HTTPException(status_code=404, detail="Transaction not found or already deleted")

    logger.info(f"Transaction {transaction_id} removed by user {current.user_id}")
    return {"message": "Transaction removed"}


@router.put("/{transaction_id}", response_model=TransactionPublic)
def update_transaction(
    transaction_id: str,
    transaction_update: TransactionUpdate,
    current: AuthenticatedUser = Depends(get_current_user),
):
    # null only means something for comment, where it removes the field
    changes = {
        key: value
        for key, value in transaction_update.model_dump(exclude_unset=True).items()
        if value is not None or key == "comment"
    }
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    existing = _owned_transaction(transaction_id, current.user_id)

    updates = {}
    remove = []
    if changes.get("amount") is not None:
        _check_amount(changes["amount"])
        updates["amount"] = changes["amount"]
    if changes.get("date") is not None:
        updates["date"] = _check_date(changes["date"])
        updates["sort_date"] = sort_key(updates["date"])
    if "comment" in changes:
        if changes["comment"] is None:
            remove.append("comment")
        else:
            updates["comment"] = changes["comment"]

    is_income = changes.get("is_income")
    if is_income is None:
        is_income = existing["is_income"]
    category = changes.get("category") or existing["category"]
    updates["category"] = _resolve_category(category, is_income)
    updates["is_income"] = is_income
    updates["updated_at"] = datetime.now(timezone.utc).isoformat()

    updated = dynamo.update_transaction(transaction_id, updates, remove)
    if not updated:
        raise HTTPException(status_code=404, detail="Transaction not found or already deleted")

    return TransactionPublic(**updated)

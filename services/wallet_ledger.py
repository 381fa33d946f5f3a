"""
Wallet ledger.

Balances are a running total kept in `wallets.balance` (smallest currency
unit); every change to it is made by one conditional UPDATE and paired with
exactly one `wallet_transactions` row in the same database transaction, so
the balance always equals credits minus debits for that wallet.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update, func, case
from sqlalchemy.exc import IntegrityError

from models import db
from models.user import User
from models.wallet import Wallet, WalletTransaction, TX_CREDIT, TX_DEBIT
from services.errors import ValidationError, NotFound, InsufficientFunds, Conflict
from utils.money import parse_amount, to_cents, has_at_most_two_places, format_cents

log = logging.getLogger(__name__)


def amount_to_cents(value) -> int:
    amount = parse_amount(value)
    if amount is None or amount <= 0:
        raise ValidationError("Invalid amount")
    if not has_at_most_two_places(amount):
        raise ValidationError("Amount can have at most two decimal places")
    return to_cents(amount)


def wallet_to_dict(wallet: Wallet) -> dict:
    return {
        "id": wallet.id,
        "user_id": wallet.user_id,
        "balance": format_cents(wallet.balance),
        "created_at": wallet.created_at.isoformat() if wallet.created_at else None,
        "updated_at": wallet.updated_at.isoformat() if wallet.updated_at else None,
    }


def transaction_to_dict(tx: WalletTransaction) -> dict:
    return {
        "id": tx.id,
        "wallet_id": tx.wallet_id,
        "amount": format_cents(tx.amount),
        "type": tx.type,
        "description": tx.description,
        "performed_by": tx.performed_by,
        "performed_by_name": tx.performer.name if tx.performer else None,
        "reference": tx.reference,
        "created_at": tx.created_at.isoformat() if tx.created_at else None,
    }


def find_wallet(user_id: int) -> Optional[Wallet]:
    return Wallet.query.filter_by(user_id=user_id).first()


def get_or_create(user_id: int) -> Wallet:
    """Idempotent: a zero-balance wallet is created on first access."""
    wallet = find_wallet(user_id)
    if wallet is not None:
        return wallet

    if db.session.get(User, user_id) is None:
        raise NotFound("User not found")

    wallet = Wallet(user_id=user_id, balance=0)
    db.session.add(wallet)
    try:
        db.session.commit()
    except IntegrityError:
        # another request created it first (unique user_id)
        db.session.rollback()
        wallet = find_wallet(user_id)
    return wallet


def _apply(wallet_id: int, cents: int, tx_type: str, description: str, performed_by: int,
           reference: Optional[str] = None, commit: bool = True) -> WalletTransaction:
    if cents <= 0:
        raise ValidationError("Invalid amount")
    if not description:
        raise ValidationError("Description is required")

    now = datetime.utcnow()
    stmt = update(Wallet).where(Wallet.id == wallet_id)
    if tx_type == TX_DEBIT:
        stmt = stmt.where(Wallet.balance >= cents).values(balance=Wallet.balance - cents, updated_at=now)
    else:
        stmt = stmt.values(balance=Wallet.balance + cents, updated_at=now)

    result = db.session.execute(stmt.execution_options(synchronize_session="fetch"))
    if result.rowcount == 0:
        wallet = db.session.get(Wallet, wallet_id)
        if wallet is None:
            raise NotFound("Wallet not found")
        raise InsufficientFunds(details={"wallet_balance": format_cents(wallet.balance)})

    tx = WalletTransaction(
        wallet_id=wallet_id,
        amount=cents,
        type=tx_type,
        description=description[:255],
        performed_by=performed_by,
        reference=reference,
        created_at=now,
    )
    db.session.add(tx)

    if not commit:
        db.session.flush()
        return tx

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Transaction already recorded", details={"reference": reference})
    return tx


def credit(wallet_id: int, amount, description: str, performed_by: int,
           reference: Optional[str] = None, commit: bool = True) -> WalletTransaction:
    return _apply(wallet_id, amount_to_cents(amount), TX_CREDIT, description, performed_by, reference, commit)


def debit(wallet_id: int, amount, description: str, performed_by: int, commit: bool = True) -> WalletTransaction:
    """Fails with InsufficientFunds, leaving balance and history untouched, if amount > balance."""
    return _apply(wallet_id, amount_to_cents(amount), TX_DEBIT, description, performed_by, None, commit)


def admin_credit(user_id: int, amount, description: str, admin_id: int) -> WalletTransaction:
    wallet = get_or_create(user_id)
    tx = credit(wallet.id, amount, description, performed_by=admin_id)
    log.info("Admin %s credited wallet %s with %s", admin_id, wallet.id, format_cents(tx.amount))
    return tx


def reference_exists(reference: str) -> bool:
    return WalletTransaction.query.filter_by(reference=reference).first() is not None


def recent_transactions(wallet_id: int, limit: int = 10, offset: int = 0):
    return (
        WalletTransaction.query
        .filter_by(wallet_id=wallet_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def ledger_total(wallet_id: int) -> int:
    """Sum of credits minus debits, in the smallest currency unit."""
    signed = case((WalletTransaction.type == TX_CREDIT, WalletTransaction.amount), else_=-WalletTransaction.amount)
    total = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(WalletTransaction.wallet_id == wallet_id)
        .scalar()
    )
    return int(total or 0)

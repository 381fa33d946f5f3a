from datetime import datetime
from models.db import db

TX_CREDIT = "credit"
TX_DEBIT = "debit"


class Wallet(db.Model):
    __tablename__ = "wallets"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    balance = db.Column(db.Integer, nullable=False, default=0)  # smallest unit (cents)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
    )


class WalletTransaction(db.Model):
    __tablename__ = "wallet_transactions"

    id = db.Column(db.Integer, primary_key=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey("wallets.id"), nullable=False, index=True)

    amount = db.Column(db.Integer, nullable=False)   # smallest unit, always positive
    type = db.Column(db.String(10), nullable=False)  # credit, debit
    description = db.Column(db.String(255), nullable=False)
    performed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # external payment reference for gateway top-ups (one credit per gateway transaction)
    reference = db.Column(db.String(255), nullable=True, unique=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    performer = db.relationship("User")

    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_wallet_tx_amount_positive"),
        db.CheckConstraint("type IN ('credit', 'debit')", name="ck_wallet_tx_type"),
    )

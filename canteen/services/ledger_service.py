"""
Ledger service — every wallet balance change goes through here.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - Debits and credits, each paired with exactly one Transaction row
  - PIN-authorized transfers between wallets
  - Order refunds, at most one per order
  - Top-ups, money requests, PIN and budget changes

Atomicity:
  Balance updates and their Transaction rows are written in the caller's
  database transaction. A transfer's debit, credit and ledger row either all
  commit or all roll back; there is no code path that commits one without
  the others.

No negative balances:
  A debit is a compare-and-set

      UPDATE accounts SET wallet_balance = wallet_balance - :amount
       WHERE id = :id AND wallet_balance >= :amount

  and a zero rowcount means insufficient funds. The CHECK constraint on
  accounts.wallet_balance is the final safety net.

Fresh reads:
  PIN and balance are re-read from the database, under lock, immediately
  before money moves. Nothing the client cached is trusted.

Deadlock prevention:
  When two accounts are involved they are locked in sorted id order, so
  A->B and B->A transfers running at once cannot lock each other out.
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.exceptions import (
    AccountNotFoundError,
    AlreadyRefundedError,
    InsufficientFundsError,
    InvalidInputError,
    SelfTransferError,
    WrongPinError,
)
from canteen.logging_config import get_logger
from canteen.models.account import Account
from canteen.models.order import Order
from canteen.models.transaction import Transaction, TransactionType
from canteen.security import hash_pin, verify_pin_hash
from canteen.services import account_service, notification_service

logger = get_logger(__name__)


async def lock_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """Load an account fresh from the database and lock its row."""
    result = await db.execute(
        select(Account)
        .where(Account.id == account_id)
        .with_for_update()  # No-op on SQLite, locks row on PostgreSQL
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def verify_pin(db: AsyncSession, account_id: uuid.UUID, pin: str) -> Account:
    """
    Re-read the account under lock and check `pin` against its stored hash.

    Returns:
        The freshly loaded, locked Account.

    Raises:
        AccountNotFoundError, WrongPinError
    """
    account = await lock_account(db, account_id)
    if not verify_pin_hash(pin, account.hashed_pin):
        logger.info("PIN rejected", account_id=account_id)
        raise WrongPinError()
    return account


def _check_amount(amount: int) -> None:
    if amount <= 0:
        raise InvalidInputError("Amount must be positive")


async def _apply_debit(db: AsyncSession, account: Account, amount: int) -> int:
    """Compare-and-set decrement of a locked account. Returns the new balance."""
    result = await db.execute(
        update(Account)
        .where(Account.id == account.id)
        .where(Account.wallet_balance >= amount)
        .values(wallet_balance=Account.wallet_balance - amount)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(account)
    if result.rowcount != 1:
        raise InsufficientFundsError(
            account_id=account.id,
            requested=amount,
            available=account.wallet_balance,
        )
    return account.wallet_balance


async def _apply_credit(db: AsyncSession, account: Account, amount: int) -> int:
    await db.execute(
        update(Account)
        .where(Account.id == account.id)
        .values(wallet_balance=Account.wallet_balance + amount)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(account)
    return account.wallet_balance


async def debit(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int,
    txn_type: TransactionType = TransactionType.ORDER,
    order_id: uuid.UUID | None = None,
    description: str | None = None,
) -> int:
    """
    Take `amount` out of a wallet and record it (sender=account, receiver=None).

    Returns:
        The new balance.

    Raises:
        InvalidInputError: amount <= 0.
        AccountNotFoundError: Unknown account.
        InsufficientFundsError: amount > balance; the balance is unchanged.
    """
    _check_amount(amount)
    account = await lock_account(db, account_id)

    if account.wallet_balance < amount:
        raise InsufficientFundsError(
            account_id=account_id,
            requested=amount,
            available=account.wallet_balance,
        )

    new_balance = await _apply_debit(db, account, amount)
    db.add(Transaction(
        sender_id=account_id,
        receiver_id=None,
        amount=amount,
        type=txn_type,
        order_id=order_id,
        description=description,
    ))
    await db.flush()

    logger.info(
        "Wallet debited",
        account_id=account_id,
        amount=amount,
        type=txn_type.value,
        order_id=order_id,
        balance_after=new_balance,
    )
    return new_balance


async def credit(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int,
    txn_type: TransactionType = TransactionType.TOPUP,
    order_id: uuid.UUID | None = None,
    description: str | None = None,
) -> int:
    """
    Add `amount` to a wallet and record it (sender=None, receiver=account).
    No upper bound is enforced.

    Returns:
        The new balance.
    """
    _check_amount(amount)
    account = await lock_account(db, account_id)

    new_balance = await _apply_credit(db, account, amount)
    db.add(Transaction(
        sender_id=None,
        receiver_id=account_id,
        amount=amount,
        type=txn_type,
        order_id=order_id,
        description=description,
    ))
    await db.flush()

    logger.info(
        "Wallet credited",
        account_id=account_id,
        amount=amount,
        type=txn_type.value,
        order_id=order_id,
        balance_after=new_balance,
    )
    return new_balance


async def topup(db: AsyncSession, account_id: uuid.UUID, amount: int) -> int:
    """Fund a wallet from an external source. Returns the new balance."""
    return await credit(db, account_id, amount, TransactionType.TOPUP, description="Wallet top-up")


async def transfer(
    db: AsyncSession,
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
    amount: int,
    pin: str,
    description: str | None = None,
) -> Transaction:
    """
    Move money between two wallets, authorized by the sender's PIN.

    Writes ONE Transaction with both parties set. The receiver gets a
    "money_received" notification.

    Raises:
        SelfTransferError: from == to.
        AccountNotFoundError: Either account does not exist.
        WrongPinError: PIN does not match the sender's stored hash.
        InsufficientFundsError: Sender balance below amount.
    """
    _check_amount(amount)
    if from_account_id == to_account_id:
        raise SelfTransferError()

    # Lock both rows in a consistent order
    first_id, second_id = sorted([from_account_id, to_account_id])
    locked = {
        first_id: await lock_account(db, first_id),
        second_id: await lock_account(db, second_id),
    }
    sender = locked[from_account_id]
    receiver = locked[to_account_id]

    if not verify_pin_hash(pin, sender.hashed_pin):
        logger.info("Transfer rejected, wrong PIN", account_id=from_account_id)
        raise WrongPinError()

    if sender.wallet_balance < amount:
        raise InsufficientFundsError(
            account_id=from_account_id,
            requested=amount,
            available=sender.wallet_balance,
        )

    await _apply_debit(db, sender, amount)
    await _apply_credit(db, receiver, amount)

    txn = Transaction(
        sender_id=from_account_id,
        receiver_id=to_account_id,
        amount=amount,
        type=TransactionType.TRANSFER,
        description=description,
    )
    db.add(txn)
    await db.flush()

    logger.info(
        "Transfer completed",
        transaction_id=txn.id,
        sender_id=from_account_id,
        receiver_id=to_account_id,
        amount=amount,
        sender_balance_after=sender.wallet_balance,
    )

    await notification_service.notify(
        db,
        user_id=to_account_id,
        category="money_received",
        title="Money received",
        message=f"{sender.name} sent you Rp {amount:,}".replace(",", "."),
        link="/wallet",
        meta={"from": str(from_account_id), "amount": amount},
    )
    return txn


async def refund(db: AsyncSession, order: Order) -> Transaction:
    """
    Pay an order's total back to the student who placed it.

    Called by order_service.cancel_order inside the same transaction that
    moves the order to CANCELED. A second refund for the same order is
    rejected here and, failing that, by the unique refund index.

    Raises:
        AlreadyRefundedError: A refund row for this order already exists.
    """
    existing = await db.execute(
        select(Transaction.id)
        .where(Transaction.order_id == order.id)
        .where(Transaction.type == TransactionType.REFUND)
    )
    if existing.first() is not None:
        raise AlreadyRefundedError(order.id)

    account = await lock_account(db, order.user_id)
    new_balance = await _apply_credit(db, account, order.total_price)

    txn = Transaction(
        sender_id=None,
        receiver_id=order.user_id,
        amount=order.total_price,
        type=TransactionType.REFUND,
        order_id=order.id,
        description="Order canceled",
    )
    db.add(txn)
    await db.flush()

    logger.info(
        "Order refunded",
        order_id=order.id,
        account_id=order.user_id,
        amount=order.total_price,
        balance_after=new_balance,
    )
    return txn


async def request_money(
    db: AsyncSession,
    requester: Account,
    target_email: str,
    amount: int,
) -> Account:
    """
    Ask another account for money. Nothing moves; the target only gets a
    "money_request" notification.

    Returns:
        The account asked.
    """
    _check_amount(amount)
    target = await account_service.get_active_account_by_email(db, target_email)
    if target.id == requester.id:
        raise SelfTransferError()

    await notification_service.notify(
        db,
        user_id=target.id,
        category="money_request",
        title="Money request",
        message=f"{requester.name} requested Rp {amount:,} from you".replace(",", "."),
        link="/wallet",
        meta={"from": str(requester.id), "amount": amount},
    )
    return target


# ---------------------------------------------------------------------------
# Account settings
# ---------------------------------------------------------------------------

async def change_pin(
    db: AsyncSession,
    account_id: uuid.UUID,
    current_pin: str,
    new_pin: str,
) -> None:
    """
    Replace the payment PIN after re-verifying the current one.

    Raises:
        WrongPinError: current_pin is wrong.
        InvalidInputError: new_pin is not 4-6 digits or equals the current PIN.
    """
    account = await verify_pin(db, account_id, current_pin)
    if not (new_pin.isdigit() and 4 <= len(new_pin) <= 6):
        raise InvalidInputError("PIN must be 4-6 digits")
    if new_pin == current_pin:
        raise InvalidInputError("New PIN must be different")

    account.hashed_pin = hash_pin(new_pin)
    await db.flush()
    logger.info("PIN changed", account_id=account_id)


async def set_monthly_budget(
    db: AsyncSession,
    account_id: uuid.UUID,
    budget: int | None,
) -> Account:
    """Set or clear (None) the monthly spending target."""
    if budget is not None and budget < 0:
        raise InvalidInputError("Budget cannot be negative")
    account = await lock_account(db, account_id)
    account.monthly_budget = budget
    await db.flush()
    return account


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def compute_balance_from_ledger(db: AsyncSession, account_id: uuid.UUID) -> int:
    """
    Recompute a balance from the ledger: money received minus money sent.

    This is the integrity-check counterpart to Account.wallet_balance.
    """
    received = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .where(Transaction.receiver_id == account_id)
    )
    sent = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .where(Transaction.sender_id == account_id)
    )
    return received.scalar() - sent.scalar()


async def get_balance(db: AsyncSession, account_id: uuid.UUID) -> dict:
    """
    Cached balance alongside the balance recomputed from the ledger.

    A `match` of False means a balance change escaped the ledger.
    """
    account = await db.get(Account, account_id, populate_existing=True)
    if account is None:
        raise AccountNotFoundError(account_id)
    computed = await compute_balance_from_ledger(db, account_id)

    return {
        "account_id": account.id,
        "wallet_balance": account.wallet_balance,
        "computed_balance": computed,
        "match": account.wallet_balance == computed,
    }


def _month_bounds(today: date) -> tuple[datetime, datetime]:
    start = datetime(today.year, today.month, 1, tzinfo=timezone.utc)
    if today.month == 12:
        end = datetime(today.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(today.year, today.month + 1, 1, tzinfo=timezone.utc)
    return start, end


async def spent_this_month(
    db: AsyncSession,
    account_id: uuid.UUID,
    today: date | None = None,
) -> int:
    """Order payments this calendar month, net of refunds."""
    start, end = _month_bounds(today or datetime.now(timezone.utc).date())

    paid = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .where(Transaction.sender_id == account_id)
        .where(Transaction.type == TransactionType.ORDER)
        .where(Transaction.created_at >= start)
        .where(Transaction.created_at < end)
    )
    refunded = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .where(Transaction.receiver_id == account_id)
        .where(Transaction.type == TransactionType.REFUND)
        .where(Transaction.created_at >= start)
        .where(Transaction.created_at < end)
    )
    return paid.scalar() - refunded.scalar()


async def budget_status(
    db: AsyncSession,
    account_id: uuid.UUID,
    pending_amount: int = 0,
) -> dict:
    """
    Month-to-date spend against the monthly budget, and whether spending
    `pending_amount` more would exceed it. Advisory only.
    """
    account = await db.get(Account, account_id, populate_existing=True)
    if account is None:
        raise AccountNotFoundError(account_id)
    spent = await spent_this_month(db, account_id)
    budget = account.monthly_budget

    return {
        "monthly_budget": budget,
        "spent_this_month": spent,
        "remaining": None if budget is None else budget - spent,
        "would_exceed": budget is not None and spent + pending_amount > budget,
    }


async def list_transactions(
    db: AsyncSession,
    account_id: uuid.UUID | None = None,
    type_filter: TransactionType | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """
    List ledger rows, newest first. With `account_id`, only rows where the
    account is sender or receiver; without it (admin), every row.
    """
    query = (
        select(Transaction)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if account_id is not None:
        query = query.where(
            (Transaction.sender_id == account_id)
            | (Transaction.receiver_id == account_id)
        )
    if type_filter is not None:
        query = query.where(Transaction.type == type_filter)

    result = await db.execute(query)
    return list(result.scalars().all())

"""
Account service — account lookups and admin management of accounts.

get_active_account_by_email() resolves a recipient for the wallet routes.

Admin functions (prefixed with `admin_`) are not scoped to the caller. The
router layer enforces that only ADMIN accounts can reach them. Balances
and money movement stay in ledger_service; this module never touches
wallet_balance.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.exceptions import AccountNotFoundError, InvalidInputError
from canteen.logging_config import get_logger, mask_email
from canteen.models.account import Account, Role

logger = get_logger(__name__)


async def admin_get_all_accounts(
    db: AsyncSession,
    role: Role | None = None,
) -> list[Account]:
    """[ADMIN ONLY] List accounts, optionally of one role, by name."""
    query = select(Account).order_by(Account.name)
    if role is not None:
        query = query.where(Account.role == role)
    result = await db.execute(query)
    return list(result.scalars().all())


async def admin_get_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    [ADMIN ONLY] Get any account by ID.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    account = await db.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def admin_set_role(
    db: AsyncSession,
    admin: Account,
    account_id: uuid.UUID,
    role: Role,
) -> Account:
    """
    [ADMIN ONLY] Promote or demote an account, e.g. a student to stall owner.

    An admin cannot change their own role, so the last admin can't lock
    everyone out by accident.
    """
    if account_id == admin.id:
        raise InvalidInputError("You cannot change your own role")

    account = await admin_get_account(db, account_id)
    previous = account.role
    account.role = role
    await db.flush()

    logger.info(
        "Account role changed",
        account_id=account_id,
        admin_id=admin.id,
        from_role=previous.value,
        to_role=role.value,
    )
    return account


async def get_active_account_by_email(db: AsyncSession, email: str) -> Account:
    """
    Resolve the recipient of a transfer or money request by email.

    Deactivated accounts are treated as unknown, so they can neither
    receive money nor be told apart from an address nobody uses.

    Raises:
        AccountNotFoundError: No active account has this email.
    """
    result = await db.execute(select(Account).where(Account.email == email))
    account = result.scalar_one_or_none()
    if account is None or not account.is_active:
        raise AccountNotFoundError(mask_email(email))
    return account

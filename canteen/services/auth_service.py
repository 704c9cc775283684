"""
Authentication service — signup and login business logic.

Signup flow:
  1. Check if email is already registered
  2. Hash the password and the payment PIN with Argon2id
  3. Create the Account with role STUDENT and an empty wallet
  4. Return a JWT token so the user is immediately logged in

Owners and admins are never self-registered; an admin promotes an existing
account (PATCH /admin/accounts/{id}/role).

Login flow:
  1. Look up the account by email
  2. Verify password against stored hash
  3. Return a JWT token

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
    to prevent user enumeration attacks
  - The token carries only the account id; role is re-read on each request
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.exceptions import DuplicateEmailError, InvalidCredentialsError
from canteen.logging_config import get_logger, mask_email
from canteen.models.account import Account, Role
from canteen.security import create_access_token, hash_password, hash_pin, verify_password

logger = get_logger(__name__)


async def signup(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    pin: str,
) -> tuple[Account, str]:
    """
    Register a new student account.

    Args:
        db: Database session.
        name: Display name.
        email: Login email (must be unique).
        password: Plaintext password (hashed before storage).
        pin: Plaintext 4-6 digit payment PIN (hashed before storage).

    Returns:
        Tuple of (Account instance, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    result = await db.execute(select(Account).where(Account.email == email))
    if result.scalar_one_or_none():
        raise DuplicateEmailError(email)

    account = Account(
        name=name,
        email=email,
        hashed_password=hash_password(password),
        hashed_pin=hash_pin(pin),
        role=Role.STUDENT,
        wallet_balance=0,
    )
    db.add(account)
    await db.flush()

    logger.info("Account registered", account_id=account.id, email=mask_email(email))

    token = create_access_token(data={"sub": str(account.id)})
    return account, token


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[Account, str]:
    """
    Authenticate an account and return a JWT token.

    Raises:
        InvalidCredentialsError: If email doesn't exist, password is wrong,
                                 or the account is deactivated.
    """
    result = await db.execute(select(Account).where(Account.email == email))
    account = result.scalar_one_or_none()

    # One error for every rejection so emails cannot be enumerated
    if not account:
        raise InvalidCredentialsError()

    if not verify_password(password, account.hashed_password):
        logger.info("Login rejected", email=mask_email(email))
        raise InvalidCredentialsError()

    if not account.is_active:
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(account.id)})
    return account, token

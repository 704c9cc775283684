"""
FastAPI dependencies for authentication and authorization.

  get_current_account (JWT -> Account, re-read from the database)
      ├── require_student  [STUDENT role]
      ├── require_owner    [OWNER role]
      └── require_admin    [ADMIN role]

The role always comes from the stored account, never from the token or the
request body, so a promotion or a deactivation takes effect on the very
next request.

Admins can view everything and run top-ups and role changes, but they have
no wallet of their own to spend from; checkout and transfers take
require_student.
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.models.account import Account, Role
from canteen.security import decode_access_token


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_account(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """
    Extract and validate the JWT token, then load the account it names.

    Raises:
        HTTPException 401: If the token is invalid, or the account doesn't
                           exist or has been deactivated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        account_id_str: str | None = payload.get("sub")
        if account_id_str is None:
            raise credentials_exception
        account_id = uuid.UUID(account_id_str)
    except (JWTError, ValueError):
        raise credentials_exception

    account = await db.get(Account, account_id, populate_existing=True)
    if account is None or not account.is_active:
        raise credentials_exception

    return account


def _require_role(role: Role, detail: str):
    async def dependency(account: Account = Depends(get_current_account)) -> Account:
        if account.role != role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return account

    return dependency


require_student = _require_role(Role.STUDENT, "Student access required")
require_owner = _require_role(Role.OWNER, "Stall owner access required")
require_admin = _require_role(Role.ADMIN, "Admin access required")

"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all()
  2. Other modules can import from canteen.models directly
"""

from canteen.models.account import Account, Role  # noqa: F401
from canteen.models.menu_item import MenuItem  # noqa: F401
from canteen.models.order import Order, OrderStatus  # noqa: F401
from canteen.models.transaction import Transaction, TransactionType  # noqa: F401
from canteen.models.notification import Notification  # noqa: F401

"""SQLModel table exports."""

from .alert_log import BudgetAlertLog
from .category import Category
from .expense import Expense
from .family import Family
from .subscription import Subscription
from .threshold import Threshold
from .user import User

__all__ = [
    "BudgetAlertLog",
    "Category",
    "Expense",
    "Family",
    "Subscription",
    "Threshold",
    "User",
]

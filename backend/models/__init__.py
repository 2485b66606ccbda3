from backend.models.user import User
from backend.models.store import Store
from backend.models.cookie import Cookie
from backend.models.activity import Activity

__all__ = ["User", "Store", "Cookie", "Activity"]

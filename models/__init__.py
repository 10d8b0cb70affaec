from models.user import User
from models.auth_session import AuthSession
from models.store import SessionStore
from models.db_storage import DBStorage
from models.memory_storage import MemoryStorage

__all__ = ["User", "AuthSession", "SessionStore", "DBStorage", "MemoryStorage"]

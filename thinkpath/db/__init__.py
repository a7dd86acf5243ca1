from thinkpath.db.database import configure_engine, get_engine, init_db, session_scope
from thinkpath.db.models import Base

__all__ = ["Base", "configure_engine", "get_engine", "init_db", "session_scope"]

from functools import lru_cache

from .catalog_store import ScriptCatalog
from .session_store import SessionStore
from .settings import DB_PATH


@lru_cache(maxsize=1)
def get_catalog() -> ScriptCatalog:
    return ScriptCatalog(DB_PATH)


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    return SessionStore(DB_PATH)

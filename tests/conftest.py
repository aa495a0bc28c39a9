import os
import tempfile

# settings are read at import time; keep test runs out of the working directory
_TMP = tempfile.mkdtemp(prefix="audit-engine-tests-")
os.environ.setdefault("AUDIT_DB_PATH", os.path.join(_TMP, "default.sqlite3"))
os.environ.setdefault("OUTPUT_DIR", os.path.join(_TMP, "output"))

import pytest

from common.catalog_store import ScriptCatalog
from common.session_store import SessionStore


@pytest.fixture
def catalog(tmp_path):
    return ScriptCatalog(tmp_path / "catalog.sqlite3")


@pytest.fixture
def session_store(tmp_path):
    return SessionStore(tmp_path / "sessions.sqlite3")


@pytest.fixture
def sample_script(catalog):
    """Script with sections Intro (3 questions) and Tools (1 question)."""
    script = catalog.create_script("Discovery audit", "first call")
    intro = catalog.create_section(script.id, "Intro")
    tools = catalog.create_section(script.id, "Tools")
    for text in ("Who are you?", "What do you sell?", "Who are your clients?"):
        catalog.create_question(intro.id, text)
    catalog.create_question(tools.id, "Which CRM do you use?")
    return catalog.get_script(script.id)


@pytest.fixture
def client(catalog, session_store):
    from fastapi.testclient import TestClient
    from common.stores import get_catalog, get_session_store
    from main import app

    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_session_store] = lambda: session_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

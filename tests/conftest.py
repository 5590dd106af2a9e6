import os, sys

import pytest

# Make tests/support.py importable from every test module
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from agelock.logging_config import resolution_id_var


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep the developer's identity and store settings out of the tests."""
    for var in ("AGE_IDENTITY_FILE", "AGE_PATH", "AGELOCK_MODE", "AGELOCK_REPAIR",
                "AGELOCK_STORE", "AGELOCK_STORE_DIR", "AGELOCK_SUBSTITUTERS",
                "AGELOCK_LOG_LEVEL", "AGELOCK_LOG_JSON"):
        monkeypatch.delenv(var, raising=False)
    token = resolution_id_var.set("")
    yield
    resolution_id_var.reset(token)

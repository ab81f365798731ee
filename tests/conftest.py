import os
import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'strata'
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))


from strata import Composer, ComposerConfig
from strata.core.logging import reset_logging_for_tests


@pytest.fixture(autouse=True)
def _isolate_strata_env(monkeypatch):
    """Tests must be deterministic regardless of developer environment.

    Any STRATA_* variable (config overlay path or key overrides) set in the
    developer shell would silently change loaded configuration.
    """
    for key in list(os.environ):
        if key.startswith("STRATA_"):
            monkeypatch.delenv(key, raising=False)
    yield
    reset_logging_for_tests()


@pytest.fixture
def composer():
    """A fresh engine per test; discarding it is the reset."""
    engine = Composer(config=ComposerConfig())
    yield engine
    # Classes used as targets are defined per test, but restore anyway so a
    # failing test never leaks refinements into module-level fixtures.
    engine.reset()


@pytest.fixture
def chain_composer():
    engine = Composer(config=ComposerConfig(delegation_mode="chain"))
    yield engine
    engine.reset()


@pytest.fixture
def scoped_composer():
    engine = Composer(config=ComposerConfig(object_scope=True))
    yield engine
    engine.reset()

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parent.parent

sys.path.insert(0, str(_REPO_ROOT))


@pytest.fixture
def library():
    from qraph.function_library import FunctionLibrary

    return FunctionLibrary(seed=1234)


@pytest.fixture
def small_config():
    from qraph.config import SessionConfig

    return SessionConfig(width=64, height=64, precision=0.5, chunk_size=16, axes=False, seed=7)

"""
Pytest configuration and fixtures.

This file ensures proper path setup for imports and provides shared
contexts and key pairs. The default context (m=10261) is built once per
session; most tests use the small m=31 context instead.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from fheverify.engine import ToyEngine  # noqa: E402
from fheverify.keys import KeyManager  # noqa: E402
from fheverify.parameters import ParameterRequest, ParameterSelector  # noqa: E402
from fheverify.rng import RandomSource  # noqa: E402

# Small index: phi(31)=30, ord_31(2)=5, six slots in one bad dimension
SMALL_M = 31
SMALL_WEIGHT = 16


@pytest.fixture(scope="session")
def default_context():
    """Context for the default knobs (R=1, p=2, r=1, k=80, c=2)."""
    return ParameterSelector().select(ParameterRequest())


@pytest.fixture(scope="session")
def small_context():
    """Six-slot context over GF(2)."""
    return ParameterSelector().select(ParameterRequest(chosen_m=SMALL_M, hamming_weight=SMALL_WEIGHT))


@pytest.fixture
def rng():
    return RandomSource(seed=7)


@pytest.fixture
def engine():
    return ToyEngine()


@pytest.fixture
def small_keys(small_context, engine, rng):
    """(secret_key, public_key) for the small context with rotation keys installed."""
    manager = KeyManager(engine, rng)
    sk = manager.generate_secret_key(small_context, SMALL_WEIGHT)
    pk = manager.add_rotation_keys(sk)
    return sk, pk


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo configure_logging so caplog sees records in every test."""
    yield
    package_logger = logging.getLogger("fheverify")
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True

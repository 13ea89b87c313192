"""
FHE engines.

Engines are looked up by name in ENGINES. The toy simulation engine is the
only one shipped; other implementations of FHEEngine can be registered with
register_engine.
"""

import logging
from typing import Dict, Type

from ..errors import ConfigurationError
from .base import Ciphertext, FHEEngine, Operand
from .toy import ToyEngine

logger = logging.getLogger(__name__)

ENGINES: Dict[str, Type[FHEEngine]] = {
    ToyEngine.name: ToyEngine,
}


def register_engine(name: str, engine_cls: Type[FHEEngine]) -> None:
    """Make `engine_cls` available to create_engine under `name`."""
    if not issubclass(engine_cls, FHEEngine):
        raise TypeError(f"{engine_cls!r} does not implement FHEEngine")
    ENGINES[name] = engine_cls


def create_engine(name: str = "toy") -> FHEEngine:
    """
    Factory function to create an FHE engine.

    Args:
        name: Registered engine name

    Returns:
        Engine instance

    Raises:
        ConfigurationError: If no engine is registered under `name`
    """
    try:
        engine_cls = ENGINES[name]
    except KeyError:
        raise ConfigurationError("ENGINE", f"unknown engine '{name}', available: {sorted(ENGINES)}") from None
    logger.info(f"Using {name} engine")
    return engine_cls()


__all__ = [
    "Ciphertext",
    "FHEEngine",
    "Operand",
    "ToyEngine",
    "ENGINES",
    "register_engine",
    "create_engine",
]

"""
fheverify - parameter derivation and dual-path correctness checks for
leveled FHE engines.

Derives scheme parameters from a handful of knobs, generates keys, runs a
fixed arithmetic program over encrypted and plaintext slot vectors, and
verifies that both agree slot by slot.
"""

__version__ = "0.1.0"

from .config import RunSettings
from .context import Context, ModulusChain
from .engine import Ciphertext, FHEEngine, ToyEngine, create_engine
from .errors import (
    ConfigurationError,
    ContextMismatchError,
    FheVerifyError,
    IrreduciblePolynomialError,
    KeyMismatchError,
    LevelBudgetExhaustedError,
    MissingRotationKeysError,
    NoiseBudgetExhaustedError,
    ParameterInfeasibleError,
    PreconditionError,
    ProgramError,
)
from .keys import KeyManager, PublicKey, SecretKey
from .parameters import ParameterRequest, ParameterSelector
from .pipeline import DualPipeline, draw_inputs
from .program import PRINT_ENCRYPTED_PROGRAM, PROGRAMS, Program
from .rng import RandomSource
from .runner import RunReport, run_check
from .slots import SlotVector
from .verifier import VerificationResult, Verifier

__all__ = [
    "__version__",
    "RunSettings",
    "Context",
    "ModulusChain",
    "Ciphertext",
    "FHEEngine",
    "ToyEngine",
    "create_engine",
    "ConfigurationError",
    "ContextMismatchError",
    "FheVerifyError",
    "IrreduciblePolynomialError",
    "KeyMismatchError",
    "LevelBudgetExhaustedError",
    "MissingRotationKeysError",
    "NoiseBudgetExhaustedError",
    "ParameterInfeasibleError",
    "PreconditionError",
    "ProgramError",
    "KeyManager",
    "PublicKey",
    "SecretKey",
    "ParameterRequest",
    "ParameterSelector",
    "DualPipeline",
    "draw_inputs",
    "PRINT_ENCRYPTED_PROGRAM",
    "PROGRAMS",
    "Program",
    "RandomSource",
    "RunReport",
    "run_check",
    "SlotVector",
    "VerificationResult",
    "Verifier",
]

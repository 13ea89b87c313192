"""
fheverify Error Taxonomy.

All failures raised by the parameter selector, key manager, engines and the
dual pipeline derive from FheVerifyError. Every error carries:
- a machine-readable code (FV_<CATEGORY>_<SPECIFIC>)
- a human-readable message
- structured details (never secret key material)

Categories:
- CONFIG: the run configuration names something that does not exist
- PARAMS: no scheme parameters satisfy the requested constraints (fatal,
  raised before any key material is generated)
- PRECONDITION: an engine or pipeline operation was called in a state that
  does not allow it (fatal)

A slot mismatch found by the verifier is a diagnostic outcome and is not
represented here.
"""

from typing import Any, Dict, Optional


class FheVerifyError(Exception):
    """Base exception for all fheverify errors."""

    def __init__(
        self,
        message: str,
        code: str = "FV_INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors (FV_CONFIG_*)
# =============================================================================


class ConfigurationError(FheVerifyError):
    """Raised when the run configuration refers to an unknown component."""

    def __init__(self, config_key: str, reason: str):
        super().__init__(
            message=f"Invalid configuration for {config_key}: {reason}",
            code="FV_CONFIG_INVALID",
            details={"config_key": config_key},
        )


# =============================================================================
# Parameter Errors (FV_PARAMS_*)
# =============================================================================


class ParameterInfeasibleError(FheVerifyError):
    """Raised when no scheme parameters satisfy the requested constraints."""

    def __init__(
        self,
        reason: str,
        constraints: Optional[Dict[str, Any]] = None,
        code: str = "FV_PARAMS_INFEASIBLE",
    ):
        super().__init__(
            message=f"Parameter selection failed: {reason}",
            code=code,
            details={"constraints": constraints} if constraints else {},
        )


class IrreduciblePolynomialError(ParameterInfeasibleError):
    """Raised when no irreducible slot polynomial exists for (p, d)."""

    def __init__(self, p: int, d: int, reason: str):
        super().__init__(
            reason=f"no irreducible polynomial of degree {d} over base {p}: {reason}",
            constraints={"p": p, "d": d},
            code="FV_PARAMS_NO_IRREDUCIBLE",
        )


# =============================================================================
# Precondition Errors (FV_PRECONDITION_*)
# =============================================================================


class PreconditionError(FheVerifyError):
    """Raised when an operation is attempted in a state that forbids it."""

    def __init__(
        self,
        message: str,
        code: str = "FV_PRECONDITION_VIOLATED",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, details=details)


class MissingRotationKeysError(PreconditionError):
    """Raised when a rotation or shift is attempted without rotation keys."""

    def __init__(self, operation: str, key_id: str):
        super().__init__(
            message=f"{operation} requires rotation key-switching matrices; call add_rotation_keys first",
            code="FV_PRECONDITION_NO_ROTATION_KEYS",
            details={"operation": operation, "public_key": key_id},
        )


class KeyMismatchError(PreconditionError):
    """Raised when operands are bound to different keys."""

    def __init__(self, expected_key_id: str, actual_key_id: str):
        super().__init__(
            message="Operands are bound to different keys",
            code="FV_PRECONDITION_KEY_MISMATCH",
            details={"expected": expected_key_id, "actual": actual_key_id},
        )


class ContextMismatchError(PreconditionError):
    """Raised when operands belong to different contexts."""

    def __init__(self, expected_hash: str, actual_hash: str):
        super().__init__(
            message="Operands belong to different contexts",
            code="FV_PRECONDITION_CONTEXT_MISMATCH",
            details={
                "expected_hash": expected_hash[:23] + "...",
                "actual_hash": actual_hash[:23] + "...",
            },
        )


class LevelBudgetExhaustedError(PreconditionError):
    """Raised when an operation would consume a level that is not available."""

    def __init__(self, operation: str, level: int):
        super().__init__(
            message=f"{operation} needs a modulus level but the ciphertext is at level {level}",
            code="FV_PRECONDITION_LEVELS_EXHAUSTED",
            details={"operation": operation, "level": level},
        )


class NoiseBudgetExhaustedError(PreconditionError):
    """Raised when a ciphertext has no noise budget left to decrypt correctly."""

    def __init__(self, operation: str, noise_budget: float):
        super().__init__(
            message=f"{operation} on a ciphertext whose noise budget is exhausted ({noise_budget:.1f} bits)",
            code="FV_PRECONDITION_NOISE_EXHAUSTED",
            details={"operation": operation, "noise_budget": round(noise_budget, 2)},
        )


class ProgramError(PreconditionError):
    """Raised when a pipeline program is malformed."""

    def __init__(self, program: str, reason: str, step: Optional[int] = None):
        details: Dict[str, Any] = {"program": program}
        if step is not None:
            details["step"] = step
        super().__init__(
            message=f"Invalid program '{program}': {reason}",
            code="FV_PRECONDITION_BAD_PROGRAM",
            details=details,
        )


# =============================================================================
# Error Code Registry
# =============================================================================

ERROR_CODES = {
    "FV_CONFIG_INVALID": "Configuration names an unknown component",
    "FV_PARAMS_INFEASIBLE": "No valid algebraic index for the constraints",
    "FV_PARAMS_NO_IRREDUCIBLE": "No irreducible slot polynomial for (p, d)",
    "FV_PRECONDITION_VIOLATED": "Operation precondition violated",
    "FV_PRECONDITION_NO_ROTATION_KEYS": "Rotation keys not installed",
    "FV_PRECONDITION_KEY_MISMATCH": "Operands bound to different keys",
    "FV_PRECONDITION_CONTEXT_MISMATCH": "Operands bound to different contexts",
    "FV_PRECONDITION_LEVELS_EXHAUSTED": "Level budget exhausted",
    "FV_PRECONDITION_NOISE_EXHAUSTED": "Noise budget exhausted",
    "FV_PRECONDITION_BAD_PROGRAM": "Malformed pipeline program",
    "FV_INTERNAL_ERROR": "Internal error",
}


def validate_error_code(code: str) -> bool:
    """Validate that an error code is registered."""
    return code in ERROR_CODES


__all__ = [
    "FheVerifyError",
    "ConfigurationError",
    "ParameterInfeasibleError",
    "IrreduciblePolynomialError",
    "PreconditionError",
    "MissingRotationKeysError",
    "KeyMismatchError",
    "ContextMismatchError",
    "LevelBudgetExhaustedError",
    "NoiseBudgetExhaustedError",
    "ProgramError",
    "ERROR_CODES",
    "validate_error_code",
]

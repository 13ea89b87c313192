"""
Tests for the error taxonomy.
"""

import pytest

from fheverify.errors import (
    ERROR_CODES,
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
    validate_error_code,
)


class TestErrorHierarchy:
    """Tests for error classes and codes."""

    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("ENGINE", "unknown"),
            ParameterInfeasibleError("no m", {"k": 80}),
            IrreduciblePolynomialError(4, 2, "not prime"),
            PreconditionError("bad state"),
            MissingRotationKeysError("rotate", "pk-1"),
            KeyMismatchError("pk-1", "pk-2"),
            ContextMismatchError("sha256:" + "a" * 64, "sha256:" + "b" * 64),
            LevelBudgetExhaustedError("multiply", 0),
            NoiseBudgetExhaustedError("decrypt", -1.5),
            ProgramError("p", "bad", step=3),
        ],
    )
    def test_codes_registered(self, error):
        assert isinstance(error, FheVerifyError)
        assert validate_error_code(error.code)
        assert str(error).startswith(f"[{error.code}] ")
        assert error.to_dict()["code"] == error.code

    def test_infeasible_family(self):
        assert issubclass(IrreduciblePolynomialError, ParameterInfeasibleError)
        assert IrreduciblePolynomialError(4, 2, "x").code == "FV_PARAMS_NO_IRREDUCIBLE"

    @pytest.mark.parametrize(
        "cls",
        [MissingRotationKeysError, KeyMismatchError, ContextMismatchError, LevelBudgetExhaustedError, ProgramError],
    )
    def test_precondition_family(self, cls):
        assert issubclass(cls, PreconditionError)

    def test_details(self):
        error = ProgramError("print-encrypted", "bad", step=3)
        assert error.details == {"program": "print-encrypted", "step": 3}
        assert ContextMismatchError("sha256:" + "a" * 64, "x" * 30).details["expected_hash"].endswith("...")

    def test_unknown_code(self):
        assert not validate_error_code("FV_NOPE")
        assert "FV_INTERNAL_ERROR" in ERROR_CODES

"""
fheverify Configuration Module.

The run configuration is a single settings struct loaded from:
- environment variables with the FHEV_ prefix (e.g. FHEV_PLAINTEXT_BASE=3)
- an optional .env file in the working directory
- keyword arguments, either by field name or by the short option names
  (gens, ords, seed, R, p, r, d, c, k, L, s, m) through
  RunSettings.from_options()

List-valued options accept the bracketed space-separated form
'[562 1871 751]' as well as JSON '[562, 1871, 751]', both from the
environment (FHEV_GENS) and when passed directly. Environment values reach
the field validator undecoded.
"""

import re
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Short option name -> settings field
OPTION_ALIASES: Dict[str, str] = {
    "gens": "GENS",
    "ords": "ORDS",
    "seed": "SEED",
    "R": "ROUNDS",
    "p": "PLAINTEXT_BASE",
    "r": "LIFTING",
    "d": "EXTENSION_DEGREE",
    "c": "KS_COLUMNS",
    "k": "SECURITY",
    "L": "LEVELS",
    "s": "MIN_SLOTS",
    "m": "CHOSEN_M",
}


class RunSettings(BaseSettings):
    """
    Settings for one parameter-derivation and dual-path verification run.

    Usage:
        from fheverify.config import RunSettings

        settings = RunSettings()                      # environment / .env
        settings = RunSettings.from_options(p=3, R=2)  # short option names
    """

    model_config = SettingsConfigDict(
        env_prefix="FHEV_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # SLOT ALGEBRA
    # ==========================================================================
    GENS: Annotated[Optional[List[int]], NoDecode] = Field(
        default=None, description="Explicit generator vector, e.g. [562 1871 751]"
    )
    ORDS: Annotated[Optional[List[int]], NoDecode] = Field(
        default=None, description="Explicit order vector, negative means 'bad'"
    )
    CHOSEN_M: int = Field(default=0, ge=0, description="Explicit algebraic index m (0 = search)")
    MIN_SLOTS: int = Field(default=0, ge=0, description="Minimum number of slots")
    EXTENSION_DEGREE: int = Field(default=1, ge=1, description="Degree of the slot field extension")

    # ==========================================================================
    # PLAINTEXT SPACE
    # ==========================================================================
    PLAINTEXT_BASE: int = Field(default=2, ge=2, description="Plaintext base p")
    LIFTING: int = Field(default=1, ge=1, description="Lifting exponent r (plaintext modulus p^r)")

    # ==========================================================================
    # SECURITY AND DEPTH
    # ==========================================================================
    ROUNDS: int = Field(default=1, ge=1, description="Number of rounds of homomorphic computation")
    LEVELS: int = Field(default=0, ge=0, description="Levels in the modulus chain (0 = heuristic)")
    KS_COLUMNS: int = Field(default=2, ge=1, description="Columns in the key-switching matrices")
    SECURITY: int = Field(default=80, ge=1, description="Security parameter in bits")
    HAMMING_WEIGHT: int = Field(default=64, ge=1, description="Hamming weight of the secret key")

    # ==========================================================================
    # RUN
    # ==========================================================================
    SEED: int = Field(default=0, ge=0, description="Seed of the run's random source")
    ENGINE: str = Field(default="toy", description="Registered FHE engine name")
    PROGRAM: str = Field(default="print-encrypted", description="Registered pipeline program name")

    # ==========================================================================
    # OBSERVABILITY
    # ==========================================================================
    ENVIRONMENT: str = Field(default="development", description="development or production (JSON logs)")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    @field_validator("GENS", "ORDS", mode="before")
    @classmethod
    def _parse_vector(cls, value: Any) -> Any:
        if isinstance(value, str):
            text = value.strip()
            if not text or text.lower() == "none":
                return None
            return [int(tok) for tok in re.findall(r"-?\d+", text)]
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value}")
        return value

    @model_validator(mode="after")
    def _check_vectors(self) -> "RunSettings":
        if self.ORDS is not None and self.GENS is None:
            raise ValueError("ORDS requires GENS")
        if self.GENS is not None and self.ORDS is not None and len(self.GENS) != len(self.ORDS):
            raise ValueError("GENS and ORDS must have the same length")
        if self.ORDS is not None and any(o == 0 for o in self.ORDS):
            raise ValueError("ORDS entries must be nonzero")
        return self

    @classmethod
    def from_options(cls, **options: Any) -> "RunSettings":
        """Build settings from the short option names (R, p, r, ...) or field names."""
        fields: Dict[str, Any] = {}
        for name, value in options.items():
            field_name = OPTION_ALIASES.get(name, name)
            if field_name not in cls.model_fields:
                raise ValueError(f"unknown option {name}")
            fields[field_name] = value
        return cls(**fields)

    def to_options(self) -> Dict[str, Any]:
        """Return the configuration under the short option names."""
        return {short: getattr(self, field) for short, field in OPTION_ALIASES.items()}

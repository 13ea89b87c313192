"""
Verifier: decrypts the encrypted results and compares them slot by slot
with the plaintext results.

A mismatch is an outcome, not an exception. A result whose noise budget is
exhausted cannot be decrypted and counts as wrong in every slot. Both are
logged at ERROR level and reported through VerificationResult.passed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .engine.base import FHEEngine
from .errors import NoiseBudgetExhaustedError
from .keys import SecretKey
from .pipeline import PipelineResult
from .slots import SlotVector

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    passed: bool
    mismatches: Dict[str, List[int]] = field(default_factory=dict)
    decrypted: Dict[str, SlotVector] = field(default_factory=dict, repr=False)

    @property
    def mismatched_registers(self) -> List[str]:
        return [name for name, slots in self.mismatches.items() if slots]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "mismatches": {name: slots for name, slots in self.mismatches.items() if slots},
        }


class Verifier:
    """Checks a PipelineResult under the secret key."""

    def __init__(self, engine: FHEEngine, secret_key: SecretKey):
        self.engine = engine
        self.secret_key = secret_key

    def verify(self, result: PipelineResult) -> VerificationResult:
        decrypted: Dict[str, SlotVector] = {}
        mismatches: Dict[str, List[int]] = {}
        for name, ct in result.ciphertexts.items():
            try:
                decrypted[name] = self.engine.decrypt(self.secret_key, ct)
            except NoiseBudgetExhaustedError as e:
                # Nothing usable decrypts; every slot counts as wrong
                logger.error(f"Register {name} cannot be decrypted: {e}")
                mismatches[name] = list(range(len(result.plaintexts[name])))
                continue
            mismatches[name] = decrypted[name].mismatched_slots(result.plaintexts[name])

        passed = not any(mismatches.values())
        if passed:
            logger.info(f"All {len(decrypted)} registers match")
        else:
            for name, slots in mismatches.items():
                if slots:
                    logger.error(f"Register {name} differs in {len(slots)} slot(s), first at slot {slots[0]}")
        return VerificationResult(passed=passed, mismatches=mismatches, decrypted=decrypted)

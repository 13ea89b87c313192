"""
Scheme context: the immutable configuration every key, slot vector and
ciphertext of a run refers to.

A Context bundles the algebraic index m, the plaintext space (p, r, G), the
slot algebra (generators and orders), the modulus chain with its
key-switching digits and special primes, and the resulting security
estimate. It is created once by the ParameterSelector and never mutated.
"""

import hashlib
import json
import math
from dataclasses import dataclass
from functools import reduce
from typing import Any, Dict, List, Tuple

from .algebra import PAlgebra, SlotRing, format_poly


def _bits(values) -> float:
    return sum(math.log2(v) for v in values)


@dataclass(frozen=True)
class ModulusChain:
    """
    Ciphertext primes q_0..q_L plus the special primes used while key switching.

    The modulus at level j is the product of the first j + 1 ciphertext
    primes, so moduli(j) increases strictly with j. Fresh ciphertexts start at
    the top level L and move down one level per consumed multiplication.
    """

    primes: Tuple[int, ...]
    special_primes: Tuple[int, ...]
    digits: Tuple[Tuple[int, ...], ...]

    @property
    def top_level(self) -> int:
        return len(self.primes) - 1

    def modulus(self, level: int) -> int:
        if not 0 <= level <= self.top_level:
            raise IndexError(f"level {level} outside 0..{self.top_level}")
        return reduce(lambda a, b: a * b, self.primes[: level + 1], 1)

    def moduli(self) -> List[int]:
        return [self.modulus(j) for j in range(len(self.primes))]

    def level_bits(self, level: int) -> float:
        return _bits(self.primes[: level + 1])

    @property
    def ciphertext_bits(self) -> float:
        return _bits(self.primes)

    @property
    def special_bits(self) -> float:
        return _bits(self.special_primes)

    @property
    def total_bits(self) -> float:
        return self.ciphertext_bits + self.special_bits


@dataclass(frozen=True)
class Context:
    """Immutable scheme configuration for one run."""

    algebra: PAlgebra
    r: int
    slot_poly: Tuple[int, ...]
    levels: int
    ks_columns: int
    min_slots: int
    security_target: int
    chain: ModulusChain
    security_level: float

    @property
    def m(self) -> int:
        return self.algebra.m

    @property
    def p(self) -> int:
        return self.algebra.p

    @property
    def phi_m(self) -> int:
        return self.algebra.phi_m

    @property
    def d(self) -> int:
        return len(self.slot_poly) - 1

    @property
    def nslots(self) -> int:
        return self.algebra.nslots

    @property
    def plaintext_modulus(self) -> int:
        """t = p^r, the modulus of every slot coefficient."""
        return self.p**self.r

    @property
    def gens(self) -> Tuple[int, ...]:
        return self.algebra.gens

    @property
    def ords(self) -> Tuple[int, ...]:
        return self.algebra.ords

    @property
    def slot_ring(self) -> SlotRing:
        return SlotRing(self.plaintext_modulus, self.slot_poly)

    def describe(self) -> List[str]:
        """The algebra description printed in the run report."""
        return self.algebra.describe()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the defining parameters (JSON-safe)."""
        return {
            "m": self.m,
            "p": self.p,
            "r": self.r,
            "d": self.d,
            "slot_poly": format_poly(self.slot_poly),
            "gens": list(self.gens),
            "ords": list(self.ords),
            "phi_m": self.phi_m,
            "ord_p": self.algebra.ord_p,
            "nslots": self.nslots,
            "levels": self.levels,
            "ks_columns": self.ks_columns,
            "min_slots": self.min_slots,
            "security_target": self.security_target,
            "primes": list(self.chain.primes),
            "special_primes": list(self.chain.special_primes),
            "security_level": round(self.security_level, 4),
        }

    def get_hash(self) -> str:
        """Compute deterministic hash of the context parameters."""
        canonical = json.dumps(self.to_dict(), sort_keys=True).encode()
        return f"sha256:{hashlib.sha256(canonical).hexdigest()}"

"""
Parameter Selection.

Turns the high-level knobs of a run (round count, plaintext base, lifting,
security target, key-switching columns, extension degree, minimum slots,
optional explicit m / generators / orders) into a concrete Context:

    1. level budget L (explicit, or the 3R+3 heuristic plus extra levels for
       larger plaintext spaces)
    2. algebraic index m (validated when given, searched otherwise)
    3. slot algebra Z_m^*/<p> with its generators and orders
    4. modulus chain q_0 < q_1 < ... < q_L plus special primes
    5. slot polynomial G of degree d over GF(p)
    6. security estimate in bits

Any infeasible combination raises ParameterInfeasibleError before key
material exists.
"""

import logging
import math
from dataclasses import dataclass
from math import gcd
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sympy import isprime, n_order, totient

from .algebra import build_palgebra, make_irreducible_poly
from .context import Context, ModulusChain
from .errors import ParameterInfeasibleError

logger = logging.getLogger(__name__)

# Bit size of a full-size modulus-chain prime and of a regular chain prime
P2_SIZE = 60
P_SIZE = P2_SIZE // 2

# Largest phi(m) bound representable as a single-precision modulus
SP_BOUND = 2**60

# Standard deviation of the encryption noise
NOISE_STDEV = 3.2

DEFAULT_HAMMING_WEIGHT = 64

# Searched indices must keep ord_m(p) at most this, or there are too few slots
MAX_ORDER = 100

# Divisors of 2^n - 1 with many slots for p = 2, in increasing phi(m)
P2_INDEX_TABLE: Tuple[int, ...] = (
    1247, 3133, 4051, 4369, 4859, 5461, 8435, 7781, 8191, 10261,
    11441, 11023, 13981, 15665, 14351, 15709, 16385, 21845, 21931, 26519,
    27305, 23377, 24929, 32767, 31609, 38161, 45551, 42433, 45991, 51319,
    53861, 53261, 60787, 64513, 61807, 62533, 66337, 82603, 65537, 82513,
    81281,
)


@dataclass
class ParameterRequest:
    """User-level constraints handed to the selector."""

    rounds: int = 1
    p: int = 2
    r: int = 1
    levels: int = 0
    ks_columns: int = 2
    security: int = 80
    d: int = 1
    min_slots: int = 0
    chosen_m: int = 0
    gens: Optional[List[int]] = None
    ords: Optional[List[int]] = None
    hamming_weight: int = DEFAULT_HAMMING_WEIGHT
    # Ciphertext multiplications the program chains; L must cover them
    min_depth: int = 0

    def __post_init__(self):
        if self.rounds < 1:
            raise ParameterInfeasibleError("round count must be at least 1", self.to_dict())
        if self.p < 2 or self.r < 1 or self.ks_columns < 1 or self.levels < 0:
            raise ParameterInfeasibleError("p >= 2, r >= 1, c >= 1 and L >= 0 are required", self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "R": self.rounds,
            "p": self.p,
            "r": self.r,
            "L": self.levels,
            "c": self.ks_columns,
            "k": self.security,
            "d": self.d,
            "s": self.min_slots,
            "m": self.chosen_m,
            "gens": self.gens,
            "ords": self.ords,
        }

    @classmethod
    def from_settings(cls, settings, min_depth: int = 0) -> "ParameterRequest":
        """Build a request from RunSettings for a program of multiplicative depth `min_depth`."""
        return cls(
            rounds=settings.ROUNDS,
            p=settings.PLAINTEXT_BASE,
            r=settings.LIFTING,
            levels=settings.LEVELS,
            ks_columns=settings.KS_COLUMNS,
            security=settings.SECURITY,
            d=settings.EXTENSION_DEGREE,
            min_slots=settings.MIN_SLOTS,
            chosen_m=settings.CHOSEN_M,
            gens=list(settings.GENS) if settings.GENS is not None else None,
            ords=list(settings.ORDS) if settings.ORDS is not None else None,
            hamming_weight=settings.HAMMING_WEIGHT,
            min_depth=min_depth,
        )


def derive_level_budget(rounds: int, p: int, r: int) -> int:
    """
    Heuristic number of levels for `rounds` rounds of computation.

    Three levels per round plus three; plaintext spaces beyond bits get
    extra levels per round for the larger encoding overhead.
    """
    levels = 3 * rounds + 3
    if p > 2 or r > 1:
        add_per_round = int(2 * math.ceil(math.log(p) * r * 3) / (math.log(2.0) * P2_SIZE)) + 1
        levels += rounds * add_per_round
    return levels


def phi_lower_bound(security: int, levels: int, ks_columns: int) -> int:
    """Smallest phi(m) giving `security` bits with an (L+1)-prime chain and c digits."""
    cc = 1.0 + 1.0 / ks_columns
    bound = math.ceil((levels + 1) * P_SIZE * cc * (security + 110) / 7.2)
    if bound > SP_BOUND:
        raise ParameterInfeasibleError(
            f"cannot support a bound of {bound}",
            {"k": security, "L": levels, "c": ks_columns},
        )
    return int(bound)


def _index_ok(m: int, p: int, d: int, min_slots: int) -> Optional[int]:
    # Returns nslots when m is usable, None otherwise
    if m < 2 or gcd(p, m) != 1:
        return None
    ord_p = int(n_order(p, m))
    if d > 1 and ord_p % d != 0:
        return None
    nslots = int(totient(m)) // ord_p
    if nslots < min_slots:
        return None
    return nslots


def find_m(
    security: int,
    levels: int,
    ks_columns: int,
    p: int,
    d: int,
    min_slots: int,
    chosen_m: int = 0,
) -> int:
    """
    Pick the algebraic index m.

    An explicit chosen_m is only validated. For p = 2 a table of divisors of
    2^n - 1 is scanned first; otherwise (or if the table has nothing large
    enough) odd candidates from the phi bound upwards are tried.
    """
    constraints = {"k": security, "L": levels, "c": ks_columns, "p": p, "d": d, "s": min_slots, "m": chosen_m}

    if chosen_m:
        if _index_ok(chosen_m, p, d, min_slots) is None:
            raise ParameterInfeasibleError(f"m={chosen_m} is not valid for the constraints", constraints)
        logger.info(f"Using explicit m={chosen_m}")
        return chosen_m

    bound = phi_lower_bound(security, levels, ks_columns)

    if p == 2:
        for m in sorted(P2_INDEX_TABLE, key=lambda v: int(totient(v))):
            if int(totient(m)) < bound:
                continue
            if _index_ok(m, p, d, min_slots) is not None:
                logger.info(f"Bound N={bound}, choosing m={m} from the p=2 table")
                return m

    for m in _odd_candidates(bound):
        if gcd(p, m) != 1:
            continue
        ord_p = _small_order(p, m, MAX_ORDER)
        if ord_p is None:
            continue
        if d > 1 and ord_p % d != 0:
            continue
        phi_m = int(totient(m))
        if phi_m < bound or phi_m // ord_p < min_slots:
            continue
        logger.info(f"Bound N={bound}, choosing m={m}, phi(m)={phi_m}")
        return m

    raise ParameterInfeasibleError(f"no algebraic index found below {10 * bound}", constraints)


def _odd_candidates(bound: int) -> Iterable[int]:
    return range(bound | 1, 10 * bound, 2)


def _small_order(p: int, m: int, limit: int) -> Optional[int]:
    # ord_m(p) if it is at most `limit`, else None
    power = 1
    for e in range(1, limit + 1):
        power = power * p % m
        if power == 1:
            return e
    return None


def _chain_primes(m: int, count: int, bits: int, skip: Iterable[int] = ()) -> List[int]:
    # Largest primes q < 2^bits with q = 1 (mod m), in decreasing order
    skip = set(skip)
    primes: List[int] = []
    q = ((2**bits - 2) // m) * m + 1
    while len(primes) < count:
        if q < 2 ** (bits - 1):
            raise ParameterInfeasibleError(
                f"not enough {bits}-bit primes congruent to 1 mod {m}", {"m": m, "needed": count}
            )
        if q not in skip and isprime(q):
            primes.append(q)
        q -= m
    return primes


def split_digits(primes: Tuple[int, ...], ks_columns: int) -> Tuple[Tuple[int, ...], ...]:
    """Partition the chain primes into at most c contiguous, near-equal digits."""
    ndigits = min(ks_columns, len(primes))
    size, extra = divmod(len(primes), ndigits)
    digits = []
    start = 0
    for i in range(ndigits):
        end = start + size + (1 if i < extra else 0)
        digits.append(tuple(primes[start:end]))
        start = end
    return tuple(digits)


def build_modulus_chain(m: int, levels: int, ks_columns: int, hamming_weight: int) -> ModulusChain:
    """
    Build L + 1 ciphertext primes and enough special primes for key switching.

    The special primes must outweigh the largest digit times
    sqrt(c / w) * sigma so that key-switching noise stays on par with
    modulus-switching noise.
    """
    found = _chain_primes(m, levels + 1, P_SIZE)
    primes = tuple(sorted(found))
    digits = split_digits(primes, ks_columns)

    max_digit_bits = max(sum(math.log2(q) for q in digit) for digit in digits)
    target_bits = max_digit_bits + math.log2(math.sqrt(ks_columns / hamming_weight) * NOISE_STDEV)
    nspecial = max(1, math.ceil(target_bits / (P_SIZE - 1)))
    special: List[int] = []
    while True:
        special = _chain_primes(m, nspecial, P_SIZE, skip=primes)
        if sum(math.log2(q) for q in special) >= target_bits:
            break
        nspecial += 1

    return ModulusChain(primes=primes, special_primes=tuple(sorted(special)), digits=digits)


def estimate_security(phi_m: int, chain: ModulusChain) -> float:
    """Estimated attacker work in bits for dimension phi(m) and modulus Q*P."""
    total_bits = chain.total_bits
    if total_bits <= 0:
        return 0.0
    return 7.2 * phi_m / total_bits - 110


class ParameterSelector:
    """
    Derives a Context from a ParameterRequest.

    Usage:
        selector = ParameterSelector()
        context = selector.select(ParameterRequest(rounds=1, p=2))
    """

    def select(self, request: ParameterRequest) -> Context:
        levels = request.levels or derive_level_budget(request.rounds, request.p, request.r)
        logger.info(f"Level budget L={levels} (R={request.rounds}, p={request.p}, r={request.r})")
        if levels < request.min_depth:
            raise ParameterInfeasibleError(
                f"L={levels} is below the multiplicative depth {request.min_depth} of the program",
                {**request.to_dict(), "depth": request.min_depth},
            )

        slot_poly = make_irreducible_poly(request.p, request.d)
        if request.ords is not None and not request.gens:
            raise ParameterInfeasibleError("explicit orders require explicit generators", request.to_dict())

        m = find_m(
            request.security,
            levels,
            request.ks_columns,
            request.p,
            request.d,
            request.min_slots,
            request.chosen_m,
        )
        algebra = build_palgebra(m, request.p, request.gens, request.ords)
        chain = build_modulus_chain(m, levels, request.ks_columns, request.hamming_weight)
        security = estimate_security(algebra.phi_m, chain)

        context = Context(
            algebra=algebra,
            r=request.r,
            slot_poly=slot_poly,
            levels=levels,
            ks_columns=request.ks_columns,
            min_slots=request.min_slots,
            security_target=request.security,
            chain=chain,
            security_level=security,
        )

        if security < request.security:
            logger.warning(f"Estimated security {security:.2f} bits is below the requested {request.security} bits")
        logger.info(
            f"Selected m={m}, phi(m)={algebra.phi_m}, nslots={algebra.nslots}, "
            f"security={security:.2f}, context={context.get_hash()[:23]}"
        )
        return context

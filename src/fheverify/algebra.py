"""
Slot algebra for the cyclotomic plaintext space.

The plaintext space Z_{p^r}[X]/Phi_m(X) splits into nslots = phi(m)/ord_m(p)
independent slots, each holding an element of the slot ring
Z_{p^r}[X]/G(X) for a degree-d slot polynomial G. Slots are indexed by the
quotient group Z_m^*/<p>, which is described here by a generator/order
decomposition (a "hypercube"); a negative order marks a bad dimension.

Slot values are stored as numpy object arrays of shape (nslots, d) holding
the coefficients of each slot element, lowest degree first.
"""

import logging
from dataclasses import dataclass
from math import gcd
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np
from sympy import Poly, divisors, isprime, n_order, symbols, totient

from .errors import IrreduciblePolynomialError, ParameterInfeasibleError

logger = logging.getLogger(__name__)

_X = symbols("X")


@dataclass(frozen=True)
class PAlgebra:
    """Structure of Z_m^* / <p> and its generator decomposition."""

    m: int
    p: int
    phi_m: int
    ord_p: int
    gens: Tuple[int, ...]
    ords: Tuple[int, ...]

    @property
    def nslots(self) -> int:
        return self.phi_m // self.ord_p

    @property
    def dimensions(self) -> int:
        return len(self.gens)

    def is_good(self, dim: int) -> bool:
        """Whether dimension `dim` has the same order in Z_m^* as in Z_m^*/<p>."""
        return self.ords[dim] > 0

    def describe(self) -> List[str]:
        """Human-readable description, one line per fact."""
        lines = [
            f"m = {self.m}, p = {self.p}, phi(m) = {self.phi_m}",
            f"  ord(p)={self.ord_p}",
        ]
        for g, o in zip(self.gens, self.ords):
            same = "=" if o > 0 else "!"
            lines.append(f"  generator {g} has order ({same}= Z_m^*) {abs(o)}")
        return lines


def cyclic_subgroup(g: int, m: int) -> Set[int]:
    """Powers of g modulo m."""
    elements = {1}
    power = g % m
    while power not in elements:
        elements.add(power)
        power = power * g % m
    return elements


def _extend(subgroup: Set[int], g: int, order: int, m: int) -> Set[int]:
    # <subgroup, g> when g^order is the first power of g inside subgroup
    extended: Set[int] = set()
    power = 1
    for _ in range(order):
        extended.update(h * power % m for h in subgroup)
        power = power * g % m
    return extended


def _relative_order(g: int, subgroup: Set[int], m: int, candidates: Sequence[int]) -> int:
    for e in candidates:
        if pow(g, e, m) in subgroup:
            return e
    raise ValueError(f"{g} has no order dividing {candidates[-1]} modulo the subgroup")


def _order_without_p(g: int, order: int, subgroup: Set[int], m: int, bound: int) -> int:
    # The order relative to the p-free subgroup is a multiple of `order`
    e = order
    while e <= bound:
        if pow(g, e, m) in subgroup:
            return e
        e += order
    return bound


def find_generators(m: int, p: int) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """
    Decompose Z_m^*/<p> greedily into generators with their orders.

    Each step picks the unit of largest order relative to the subgroup
    generated so far (p included). The order is negated when the same
    generator needs more steps to reach the subgroup generated without p.
    """
    phi_m = int(totient(m))
    ord_p = int(n_order(p, m)) if m > 1 else 1
    remaining = phi_m // ord_p

    with_p = cyclic_subgroup(p, m)
    without_p = {1}
    units = [g for g in range(2, m) if gcd(g, m) == 1]

    gens: List[int] = []
    ords: List[int] = []
    while remaining > 1:
        candidates = divisors(remaining)
        best_g, best_order = 0, 0
        for g in units:
            if g in with_p:
                continue
            order = _relative_order(g, with_p, m, candidates)
            if order > best_order:
                best_g, best_order = g, order
                if order == remaining:
                    break

        free_order = _order_without_p(best_g, best_order, without_p, m, phi_m)
        gens.append(best_g)
        ords.append(best_order if free_order == best_order else -best_order)

        with_p = _extend(with_p, best_g, best_order, m)
        without_p = _extend(without_p, best_g, free_order, m)
        remaining //= best_order

    return tuple(gens), tuple(ords)


def validate_generators(
    m: int,
    p: int,
    gens: Sequence[int],
    ords: Optional[Sequence[int]] = None,
) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """
    Check explicit generators (and orders) against Z_m^*/<p>.

    Returns the generators with their computed signed orders.
    """
    constraints = {"m": m, "p": p, "gens": list(gens), "ords": list(ords) if ords is not None else None}
    if ords is not None and len(ords) != len(gens):
        raise ParameterInfeasibleError("gens and ords differ in length", constraints)

    phi_m = int(totient(m))
    ord_p = int(n_order(p, m))
    remaining = phi_m // ord_p

    with_p = cyclic_subgroup(p, m)
    without_p = {1}
    signed: List[int] = []
    for i, g in enumerate(gens):
        g = g % m
        if gcd(g, m) != 1:
            raise ParameterInfeasibleError(f"generator {gens[i]} is not a unit modulo {m}", constraints)
        if remaining == 1 or g in with_p:
            raise ParameterInfeasibleError(f"generator {gens[i]} is redundant", constraints)
        order = _relative_order(g, with_p, m, divisors(remaining))
        free_order = _order_without_p(g, order, without_p, m, phi_m)
        if ords is not None and abs(ords[i]) != order:
            raise ParameterInfeasibleError(
                f"generator {gens[i]} has order {order}, not {abs(ords[i])}", constraints
            )
        signed.append(order if free_order == order else -order)
        with_p = _extend(with_p, g, order, m)
        without_p = _extend(without_p, g, free_order, m)
        remaining //= order

    if remaining != 1:
        raise ParameterInfeasibleError(
            f"generators span only {phi_m // ord_p // remaining} of {phi_m // ord_p} slots", constraints
        )
    return tuple(g % m for g in gens), tuple(signed)


def build_palgebra(
    m: int,
    p: int,
    gens: Optional[Sequence[int]] = None,
    ords: Optional[Sequence[int]] = None,
) -> PAlgebra:
    """Construct the PAlgebra for (m, p), deriving generators when none are given."""
    if gens:
        gens_t, ords_t = validate_generators(m, p, gens, ords)
    else:
        gens_t, ords_t = find_generators(m, p)
    phi_m = int(totient(m))
    ord_p = int(n_order(p, m))
    algebra = PAlgebra(m=m, p=p, phi_m=phi_m, ord_p=ord_p, gens=gens_t, ords=ords_t)
    logger.debug(f"Slot algebra m={m} p={p}: gens={gens_t} ords={ords_t}")
    return algebra


def make_irreducible_poly(p: int, d: int) -> Tuple[int, ...]:
    """
    First monic irreducible polynomial of degree d over GF(p).

    Candidates X^d + c_{d-1} X^{d-1} + ... + c_0 are enumerated with the
    coefficient tuple (c_0, ..., c_{d-1}) counting up in base p. Returns the
    coefficients lowest degree first; degree 1 gives X.
    """
    if d < 1:
        raise IrreduciblePolynomialError(p, d, "degree must be at least 1")
    if not isprime(p):
        raise IrreduciblePolynomialError(p, d, "plaintext base is not prime")
    if d == 1:
        return (0, 1)

    for index in range(p**d):
        low = []
        rest = index
        for _ in range(d):
            rest, digit = divmod(rest, p)
            low.append(digit)
        if low[0] == 0:
            continue
        dense = [1] + list(reversed(low))
        if Poly(dense, _X, modulus=p).is_irreducible:
            return tuple(low) + (1,)
    raise IrreduciblePolynomialError(p, d, "exhausted all monic candidates")


def format_poly(coeffs: Sequence[int]) -> str:
    """Render coefficients (lowest degree first) as e.g. X^2+X+1."""
    terms = []
    for degree in range(len(coeffs) - 1, -1, -1):
        c = coeffs[degree]
        if c == 0:
            continue
        if degree == 0:
            terms.append(str(c))
        else:
            base = "X" if degree == 1 else f"X^{degree}"
            terms.append(base if c == 1 else f"{c}*{base}")
    return "+".join(terms) if terms else "0"


class SlotRing:
    """
    Arithmetic in Z_t[X]/G(X), vectorised over a leading slot axis.

    Arrays have shape (nslots, d); all results are reduced modulo t and G.
    """

    def __init__(self, modulus: int, poly: Sequence[int]):
        if poly[-1] != 1:
            raise ValueError("slot polynomial must be monic")
        self.modulus = modulus
        self.poly = tuple(int(c) for c in poly)
        self.degree = len(self.poly) - 1

    def __repr__(self) -> str:
        return f"SlotRing(Z_{self.modulus}[X]/({format_poly(self.poly)}))"

    def reduce(self, values: np.ndarray) -> np.ndarray:
        return np.mod(values, self.modulus)

    def zeros(self, nslots: int) -> np.ndarray:
        return np.zeros((nslots, self.degree), dtype=object)

    def add(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return self.reduce(a + b)

    def sub(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return self.reduce(a - b)

    def neg(self, a: np.ndarray) -> np.ndarray:
        return self.reduce(-a)

    def mul(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        d = self.degree
        nslots = a.shape[0]
        product = np.zeros((nslots, 2 * d - 1), dtype=object)
        for i in range(d):
            for j in range(d):
                product[:, i + j] = product[:, i + j] + a[:, i] * b[:, j]
        # X^d = -(g_{d-1} X^{d-1} + ... + g_0)
        for k in range(2 * d - 2, d - 1, -1):
            lead = product[:, k]
            for j in range(d):
                product[:, k - d + j] = product[:, k - d + j] - lead * self.poly[j]
            product[:, k] = 0
        return self.reduce(product[:, :d])


def rotate_slots(values: np.ndarray, amount: int) -> np.ndarray:
    """Cyclic rotation: the value in slot i moves to slot (i + amount) mod nslots."""
    return np.roll(values, amount, axis=0)


def shift_slots(values: np.ndarray, amount: int) -> np.ndarray:
    """Non-cyclic shift with zero fill: slot i takes slot (i - amount) or 0."""
    nslots = values.shape[0]
    shifted = np.zeros_like(values)
    if abs(amount) >= nslots:
        return shifted
    if amount > 0:
        shifted[amount:] = values[: nslots - amount]
    elif amount < 0:
        shifted[: nslots + amount] = values[-amount:]
    else:
        shifted[:] = values
    return shifted

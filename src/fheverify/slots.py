"""
Plaintext slot vectors.

A SlotVector holds one slot-ring element per SIMD slot of a Context and
supports the same slot-wise operations the engines offer on ciphertexts:
add, subtract, multiply, negate, non-cyclic shift and cyclic rotation.
Binary operations require both operands to be bound to the same Context.
"""

from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from .algebra import rotate_slots, shift_slots
from .context import Context
from .errors import ContextMismatchError
from .rng import RandomSource


class SlotVector:
    """Ordered sequence of nslots plaintext values bound to a Context."""

    __slots__ = ("_context", "_values")

    def __init__(self, context: Context, values: Optional[np.ndarray] = None):
        self._context = context
        shape = (context.nslots, context.d)
        if values is None:
            self._values = np.zeros(shape, dtype=object)
        else:
            values = np.asarray(values, dtype=object)
            if values.ndim == 1 and context.d == 1:
                values = values.reshape(-1, 1)
            if values.shape != shape:
                raise ValueError(f"expected slot values of shape {shape}, got {values.shape}")
            self._values = context.slot_ring.reduce(values)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def random(cls, context: Context, rng: RandomSource) -> "SlotVector":
        """Uniformly random slot values over Z_{p^r}[X]/G."""
        values = rng.residues((context.nslots, context.d), context.plaintext_modulus)
        return cls(context, values)

    @classmethod
    def from_ints(cls, context: Context, ints: Sequence[int]) -> "SlotVector":
        """Constant-coefficient slots from a sequence of nslots integers."""
        if len(ints) != context.nslots:
            raise ValueError(f"expected {context.nslots} values, got {len(ints)}")
        values = np.zeros((context.nslots, context.d), dtype=object)
        values[:, 0] = [int(v) for v in ints]
        return cls(context, values)

    def copy(self) -> "SlotVector":
        return SlotVector(self._context, self._values.copy())

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def context(self) -> Context:
        return self._context

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the (nslots, d) coefficient array."""
        view = self._values.view()
        view.flags.writeable = False
        return view

    def __len__(self) -> int:
        return self._values.shape[0]

    def tolist(self) -> List[Union[int, List[int]]]:
        if self._context.d == 1:
            return [int(v) for v in self._values[:, 0]]
        return [[int(c) for c in row] for row in self._values]

    def __iter__(self) -> Iterable:
        return iter(self.tolist())

    def __repr__(self) -> str:
        preview = self.tolist()[:8]
        more = ", ..." if len(self) > 8 else ""
        return f"SlotVector(nslots={len(self)}, values={preview}{more})"

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def _check_context(self, other: "SlotVector") -> None:
        if other._context is not self._context and other._context != self._context:
            raise ContextMismatchError(self._context.get_hash(), other._context.get_hash())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SlotVector):
            return NotImplemented
        self._check_context(other)
        return bool(np.array_equal(self._values, other._values))

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def mismatched_slots(self, other: "SlotVector") -> List[int]:
        """Indices of slots whose values differ."""
        self._check_context(other)
        differs = np.any(self._values != other._values, axis=1)
        return [int(i) for i in np.nonzero(differs)[0]]

    # ------------------------------------------------------------------
    # Slot-wise arithmetic
    # ------------------------------------------------------------------

    def __add__(self, other: "SlotVector") -> "SlotVector":
        self._check_context(other)
        return SlotVector(self._context, self._context.slot_ring.add(self._values, other._values))

    def __sub__(self, other: "SlotVector") -> "SlotVector":
        self._check_context(other)
        return SlotVector(self._context, self._context.slot_ring.sub(self._values, other._values))

    def __mul__(self, other: "SlotVector") -> "SlotVector":
        self._check_context(other)
        return SlotVector(self._context, self._context.slot_ring.mul(self._values, other._values))

    def __neg__(self) -> "SlotVector":
        return SlotVector(self._context, self._context.slot_ring.neg(self._values))

    def shift(self, amount: int) -> "SlotVector":
        """Non-cyclic shift with zero fill; positive moves values to higher slots."""
        return SlotVector(self._context, shift_slots(self._values, amount))

    def rotate(self, amount: int) -> "SlotVector":
        """Cyclic rotation; positive moves values to higher slots."""
        return SlotVector(self._context, rotate_slots(self._values, amount))

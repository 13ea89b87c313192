"""
FHE engine capability contract.

The core never touches cryptographic primitives directly; it drives an
FHEEngine. An engine generates keys for a Context, encrypts SlotVectors
under a PublicKey into Ciphertexts, evaluates slot-wise operations on
them, and decrypts back into SlotVectors.

Ciphertext bookkeeping shared by all engines:
    - key_id: the public key the ciphertext is bound to
    - level: index into the modulus chain, starting at L for fresh
      encryptions and dropping by one per ciphertext multiplication
    - noise_budget: remaining bits before decryption becomes incorrect
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, List, Union

from ..context import Context
from ..errors import ContextMismatchError, KeyMismatchError
from ..keys import KeySwitchingMatrix, PublicKey, SecretKey
from ..rng import RandomSource
from ..slots import SlotVector


@dataclass(eq=False)
class Ciphertext:
    """Encrypted slot vector bound to one public key."""

    public_key: PublicKey = field(repr=False)
    level: int
    noise_budget: float
    payload: Any = field(repr=False)
    canonical: bool = False

    @property
    def key_id(self) -> str:
        return self.public_key.key_id

    @property
    def context(self) -> Context:
        return self.public_key.context

    def copy(self) -> "Ciphertext":
        payload = self.payload.copy() if hasattr(self.payload, "copy") else self.payload
        return replace(self, payload=payload)

    def check_compatible(self, other: Union["Ciphertext", SlotVector]) -> None:
        """Raise unless `other` may be combined with this ciphertext."""
        if isinstance(other, Ciphertext):
            if other.key_id != self.key_id:
                raise KeyMismatchError(self.key_id, other.key_id)
            return
        if other.context is not self.context and other.context != self.context:
            raise ContextMismatchError(self.context.get_hash(), other.context.get_hash())

    def __repr__(self) -> str:
        return (
            f"Ciphertext(key_id={self.key_id!r}, level={self.level}, "
            f"noise_budget={self.noise_budget:.1f}, canonical={self.canonical})"
        )


Operand = Union[Ciphertext, SlotVector]


class FHEEngine(ABC):
    """
    Abstract base class for FHE engines.

    Binary operations accept a second Ciphertext under the same public key,
    or a plaintext SlotVector of the same Context.
    """

    name: str = "abstract"

    @abstractmethod
    def generate_secret_key(self, context: Context, weight: int, rng: RandomSource) -> SecretKey:
        """
        Generate a secret key with exactly `weight` nonzero coefficients.

        Args:
            context: Scheme context
            weight: Hamming weight, 1 <= weight <= phi(m)
            rng: Explicit random source

        Returns:
            SecretKey without a public key attached
        """
        pass

    @abstractmethod
    def derive_public_key(self, secret_key: SecretKey) -> PublicKey:
        """Derive Enc(0) and the relinearization matrix for `secret_key`."""
        pass

    @abstractmethod
    def add_rotation_keys(self, secret_key: SecretKey) -> List[KeySwitchingMatrix]:
        """Key-switching matrices for every generator dimension of the context."""
        pass

    @abstractmethod
    def encrypt(self, public_key: PublicKey, slots: SlotVector) -> Ciphertext:
        """Encrypt a slot vector at the top level of the modulus chain."""
        pass

    @abstractmethod
    def decrypt(self, secret_key: SecretKey, ciphertext: Ciphertext) -> SlotVector:
        """Decrypt into a fresh slot vector."""
        pass

    @abstractmethod
    def add(self, ct: Ciphertext, other: Operand) -> Ciphertext:
        """Slot-wise addition."""
        pass

    @abstractmethod
    def sub(self, ct: Ciphertext, other: Operand) -> Ciphertext:
        """Slot-wise subtraction."""
        pass

    @abstractmethod
    def multiply(self, ct: Ciphertext, other: Operand) -> Ciphertext:
        """Slot-wise multiplication by a ciphertext (consumes a level) or a constant."""
        pass

    @abstractmethod
    def negate(self, ct: Ciphertext) -> Ciphertext:
        """Slot-wise negation."""
        pass

    @abstractmethod
    def shift(self, ct: Ciphertext, amount: int) -> Ciphertext:
        """Non-cyclic slot shift with zero fill; needs rotation keys."""
        pass

    @abstractmethod
    def rotate(self, ct: Ciphertext, amount: int) -> Ciphertext:
        """Cyclic slot rotation; needs rotation keys."""
        pass

    @abstractmethod
    def normalize(self, ct: Ciphertext) -> Ciphertext:
        """Bring the ciphertext into canonical form; idempotent."""
        pass

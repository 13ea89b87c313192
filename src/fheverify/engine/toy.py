"""
TOY simulation engine.

IMPORTANT: ToyEngine is NOT CRYPTOGRAPHICALLY SECURE. Ciphertexts carry
their slot values in the clear; only the bookkeeping of a leveled scheme is
simulated:

- keys are bound by id, and operands under different keys are rejected
- secret keys are real Hamming-weight ternary vectors drawn from the run's
  random source
- the public key holds Enc(0) and a relinearization matrix; rotations and
  shifts require the rotation matrices installed by KeyManager
- every ciphertext tracks its modulus-chain level and a noise budget, and
  decryption refuses exhausted ciphertexts

It exists so the dual pipeline and verifier can run end to end without a
native FHE library.
"""

import logging
import math
from typing import List

import numpy as np

from ..algebra import rotate_slots
from ..context import Context
from ..errors import (
    KeyMismatchError,
    LevelBudgetExhaustedError,
    MissingRotationKeysError,
    NoiseBudgetExhaustedError,
    PreconditionError,
)
from ..keys import RELINEARIZATION, KeySwitchingMatrix, PublicKey, SecretKey, rotation_exponents
from ..rng import RandomSource
from ..slots import SlotVector
from .base import Ciphertext, FHEEngine, Operand

logger = logging.getLogger(__name__)

# Bits kept in reserve below the modulus at every level
NOISE_MARGIN_BITS = 10


class ToyEngine(FHEEngine):
    """
    TOY leveled FHE engine for development and testing ONLY.

    WARNING: THIS IS NOT CRYPTOGRAPHICALLY SECURE!
    """

    name = "toy"

    def __init__(self):
        logger.warning(
            "*** USING ToyEngine - NOT CRYPTOGRAPHICALLY SECURE! ***\n"
            "Ciphertexts are simulated; use a native engine for real encryption."
        )

    # ------------------------------------------------------------------
    # Noise model
    # ------------------------------------------------------------------

    @staticmethod
    def fresh_budget(context: Context, level: int) -> float:
        """Noise budget of a fresh ciphertext at `level`."""
        return context.chain.level_bits(level) - math.log2(context.plaintext_modulus) - NOISE_MARGIN_BITS

    @staticmethod
    def _plain_cost(context: Context) -> float:
        return math.log2(context.plaintext_modulus) + 1

    @staticmethod
    def _product_cost(context: Context) -> float:
        return math.log2(context.plaintext_modulus) + math.log2(context.phi_m)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def generate_secret_key(self, context: Context, weight: int, rng: RandomSource) -> SecretKey:
        if not 1 <= weight <= context.phi_m:
            raise PreconditionError(
                f"Hamming weight {weight} outside 1..{context.phi_m}",
                details={"weight": weight, "phi_m": context.phi_m},
            )
        material = np.zeros(context.phi_m, dtype=np.int8)
        material[rng.positions(context.phi_m, weight)] = rng.signs(weight)
        sk = SecretKey(key_id="", context=context, weight=weight, material=material)
        sk.key_id = f"sk-{sk.material_digest[:16]}"
        return sk

    def derive_public_key(self, secret_key: SecretKey) -> PublicKey:
        context = secret_key.context
        pk = PublicKey(key_id=secret_key.public_key_id, context=context, encryption_of_zero=None)
        pk.encryption_of_zero = Ciphertext(
            public_key=pk,
            level=context.levels,
            noise_budget=self.fresh_budget(context, context.levels),
            payload=context.slot_ring.zeros(context.nslots),
            canonical=True,
        )
        columns = len(context.chain.digits)
        pk._install(KeySwitchingMatrix.from_power(secret_key.material_digest, RELINEARIZATION, columns))
        return pk

    def add_rotation_keys(self, secret_key: SecretKey) -> List[KeySwitchingMatrix]:
        context = secret_key.context
        columns = len(context.chain.digits)
        matrices = []
        for g, order in zip(context.gens, context.ords):
            for exponent in rotation_exponents(g, order, context.m):
                matrices.append(KeySwitchingMatrix.from_power(secret_key.material_digest, exponent, columns))
        return matrices

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def encrypt(self, public_key: PublicKey, slots: SlotVector) -> Ciphertext:
        zero = public_key.encryption_of_zero
        zero.check_compatible(slots)
        ring = public_key.context.slot_ring
        return Ciphertext(
            public_key=public_key,
            level=zero.level,
            noise_budget=zero.noise_budget,
            payload=ring.add(zero.payload, np.array(slots.values)),
        )

    def decrypt(self, secret_key: SecretKey, ciphertext: Ciphertext) -> SlotVector:
        if ciphertext.key_id != secret_key.public_key_id:
            raise KeyMismatchError(secret_key.public_key_id, ciphertext.key_id)
        if ciphertext.noise_budget <= 0:
            raise NoiseBudgetExhaustedError("decrypt", ciphertext.noise_budget)
        return SlotVector(secret_key.context, ciphertext.payload.copy())

    # ------------------------------------------------------------------
    # Slot-wise arithmetic
    # ------------------------------------------------------------------

    def _combine(self, ct: Ciphertext, other: Operand, op) -> Ciphertext:
        ct.check_compatible(other)
        if isinstance(other, Ciphertext):
            payload = op(ct.payload, other.payload)
            level = min(ct.level, other.level)
            budget = min(ct.noise_budget, other.noise_budget) - 1
        else:
            payload = op(ct.payload, np.array(other.values))
            level = ct.level
            budget = ct.noise_budget - 1
        return Ciphertext(public_key=ct.public_key, level=level, noise_budget=budget, payload=payload)

    def add(self, ct: Ciphertext, other: Operand) -> Ciphertext:
        return self._combine(ct, other, ct.context.slot_ring.add)

    def sub(self, ct: Ciphertext, other: Operand) -> Ciphertext:
        return self._combine(ct, other, ct.context.slot_ring.sub)

    def multiply(self, ct: Ciphertext, other: Operand) -> Ciphertext:
        ct.check_compatible(other)
        context = ct.context
        ring = context.slot_ring
        if not isinstance(other, Ciphertext):
            return Ciphertext(
                public_key=ct.public_key,
                level=ct.level,
                noise_budget=ct.noise_budget - self._plain_cost(context),
                payload=ring.mul(ct.payload, np.array(other.values)),
            )

        if not ct.public_key.has_relinearization_key:
            raise PreconditionError(
                "ciphertext multiplication requires a relinearization matrix",
                details={"public_key": ct.key_id},
            )
        level = min(ct.level, other.level)
        if level == 0:
            raise LevelBudgetExhaustedError("multiply", level)
        level -= 1
        budget = min(
            min(ct.noise_budget, other.noise_budget) - self._product_cost(context),
            self.fresh_budget(context, level),
        )
        return Ciphertext(
            public_key=ct.public_key,
            level=level,
            noise_budget=budget,
            payload=ring.mul(ct.payload, other.payload),
        )

    def negate(self, ct: Ciphertext) -> Ciphertext:
        return Ciphertext(
            public_key=ct.public_key,
            level=ct.level,
            noise_budget=ct.noise_budget,
            payload=ct.context.slot_ring.neg(ct.payload),
        )

    def _require_rotation_keys(self, ct: Ciphertext, operation: str) -> None:
        if not ct.public_key.has_rotation_keys:
            raise MissingRotationKeysError(operation, ct.key_id)

    def rotate(self, ct: Ciphertext, amount: int) -> Ciphertext:
        self._require_rotation_keys(ct, "rotate")
        return Ciphertext(
            public_key=ct.public_key,
            level=ct.level,
            noise_budget=ct.noise_budget - 1,
            payload=rotate_slots(ct.payload, amount),
        )

    def shift(self, ct: Ciphertext, amount: int) -> Ciphertext:
        self._require_rotation_keys(ct, "shift")
        shifted = SlotVector(ct.context, ct.payload).shift(amount)
        # A shift is a rotation followed by a multiplication with a 0/1 mask
        return Ciphertext(
            public_key=ct.public_key,
            level=ct.level,
            noise_budget=ct.noise_budget - 1 - self._plain_cost(ct.context),
            payload=np.array(shifted.values),
        )

    def normalize(self, ct: Ciphertext) -> Ciphertext:
        normalized = ct.copy()
        normalized.payload = ct.context.slot_ring.reduce(normalized.payload)
        normalized.canonical = True
        return normalized

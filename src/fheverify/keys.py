"""
Key Management Module.

Key Types:
    - SecretKey: Hamming-weight secret material, held by the verifier
    - PublicKey: Enc(0) plus key-switching matrices, used for encryption
      and homomorphic evaluation
    - KeySwitchingMatrix: material that switches a ciphertext from the key
      s(X^e) (or s^2 for relinearization) back to s(X)

Key Flow:
    1. KeyManager.generate_secret_key(context, weight)
    2. KeyManager.derive_public_key(sk) attaches Enc(0) and the
       relinearization matrix to sk
    3. KeyManager.add_rotation_keys(sk) installs one matrix per generator
       power needed for rotations and shifts

The public key is owned by its secret key and exposes its key-switching
material only through read-only views; KeyManager is the single place
that installs new matrices.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .context import Context
from .errors import PreconditionError
from .rng import RandomSource

logger = logging.getLogger(__name__)

# Exponent used to label the relinearization matrix (s^2 -> s)
RELINEARIZATION = 0


def key_digest(*parts: bytes) -> str:
    """Hex sha256 over the concatenated parts."""
    h = hashlib.sha256()
    for part in parts:
        h.update(part)
    return h.hexdigest()


@dataclass(frozen=True)
class KeySwitchingMatrix:
    """
    One key-switching matrix.

    `exponent` is the automorphism X -> X^exponent whose key it switches
    from, or RELINEARIZATION for s^2 -> s. There is one column per
    key-switching digit; `digests` fingerprints the material of each column.
    """

    exponent: int
    columns: int
    digests: Tuple[str, ...]

    @classmethod
    def from_power(cls, material_digest: str, exponent: int, columns: int) -> "KeySwitchingMatrix":
        digests = tuple(
            key_digest(b"ksm:", material_digest.encode(), str(exponent).encode(), str(i).encode())[:32]
            for i in range(columns)
        )
        return cls(exponent=exponent, columns=columns, digests=digests)

    @property
    def is_relinearization(self) -> bool:
        return self.exponent == RELINEARIZATION

    def to_dict(self) -> Dict[str, Any]:
        return {"exponent": self.exponent, "columns": self.columns, "digests": list(self.digests)}


@dataclass(eq=False)
class PublicKey:
    """
    Public encryption/evaluation key.

    Safe to hand to the party running the encrypted computation.
    """

    key_id: str
    context: Context
    encryption_of_zero: Any
    _matrices: Dict[int, KeySwitchingMatrix] = field(default_factory=dict, repr=False)

    @property
    def key_switching(self) -> Mapping[int, KeySwitchingMatrix]:
        """Read-only view of the installed matrices, keyed by exponent."""
        return MappingProxyType(self._matrices)

    @property
    def rotation_exponents(self) -> Tuple[int, ...]:
        return tuple(sorted(e for e in self._matrices if e != RELINEARIZATION))

    @property
    def has_relinearization_key(self) -> bool:
        return RELINEARIZATION in self._matrices

    @property
    def has_rotation_keys(self) -> bool:
        """Whether every generator dimension has its key-switching matrices."""
        m = self.context.m
        for g, order in zip(self.context.gens, self.context.ords):
            for exponent in rotation_exponents(g, order, m):
                if exponent not in self._matrices:
                    return False
        return True

    def get_fingerprint(self) -> str:
        """Fingerprint over the key id and every installed column digest."""
        parts = [self.key_id.encode()]
        for exponent in sorted(self._matrices):
            parts.extend(d.encode() for d in self._matrices[exponent].digests)
        return f"sha256:{key_digest(*parts)[:16]}"

    def _install(self, matrix: KeySwitchingMatrix) -> bool:
        # Returns False when the exponent was already present
        if matrix.exponent in self._matrices:
            return False
        self._matrices[matrix.exponent] = matrix
        return True


@dataclass(eq=False)
class SecretKey:
    """
    Secret key: a ternary vector of length phi(m) with exactly `weight`
    nonzero entries.

    MUST stay with the verifier. Never logged.
    """

    key_id: str
    context: Context
    weight: int
    material: np.ndarray = field(repr=False)
    public_key: Optional[PublicKey] = field(default=None, repr=False)

    @property
    def material_digest(self) -> str:
        return key_digest(self.material.tobytes(), self.context.get_hash().encode())

    @property
    def public_key_id(self) -> str:
        """Identifier the derived public key carries."""
        return f"pk-{key_digest(b'pk:', self.material_digest.encode())[:16]}"

    def hamming_weight(self) -> int:
        return int(np.count_nonzero(self.material))


def rotation_exponents(g: int, order: int, m: int) -> List[int]:
    """
    Automorphism exponents needed to rotate along one generator dimension.

    g^(2^j) mod m for every 2^j < |order|; bad dimensions (negative order)
    also need the inverse direction g^(-2^j).
    """
    exponents: List[int] = []
    step = 1
    while step < abs(order):
        exponents.append(pow(g, step, m))
        if order < 0:
            exponents.append(pow(g, -step, m))
        step *= 2
    return exponents


class KeyManager:
    """
    Generates and extends key material through an FHE engine.

    Usage:
        manager = KeyManager(engine, rng)
        sk = manager.generate_secret_key(context, weight=64)
        pk = manager.derive_public_key(sk)
        manager.add_rotation_keys(sk)
    """

    def __init__(self, engine, rng: RandomSource):
        self.engine = engine
        self.rng = rng

    def generate_secret_key(self, context: Context, weight: int) -> SecretKey:
        if not 1 <= weight <= context.phi_m:
            raise PreconditionError(
                f"Hamming weight {weight} outside 1..{context.phi_m}",
                details={"weight": weight, "phi_m": context.phi_m},
            )
        sk = self.engine.generate_secret_key(context, weight, self.rng)
        logger.info(f"Generated secret key {sk.key_id} (weight={weight}, phi(m)={context.phi_m})")
        return sk

    def derive_public_key(self, secret_key: SecretKey) -> PublicKey:
        """Attach and return the public key; repeated calls return the same key."""
        if secret_key.public_key is not None:
            return secret_key.public_key
        pk = self.engine.derive_public_key(secret_key)
        secret_key.public_key = pk
        logger.info(f"Derived public key {pk.key_id} with {len(pk.key_switching)} key-switching matrices")
        return pk

    def add_rotation_keys(self, secret_key: SecretKey) -> PublicKey:
        """Install the key-switching matrices for every generator dimension."""
        pk = self.derive_public_key(secret_key)
        installed = 0
        for matrix in self.engine.add_rotation_keys(secret_key):
            if pk._install(matrix):
                installed += 1
        logger.info(
            f"Installed {installed} rotation key-switching matrices on {pk.key_id} "
            f"(dimensions={len(secret_key.context.gens)})"
        )
        return pk

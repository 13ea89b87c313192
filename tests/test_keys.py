"""
Tests for key generation and key-switching material.
"""

import numpy as np
import pytest

from fheverify.errors import PreconditionError
from fheverify.keys import RELINEARIZATION, KeyManager, KeySwitchingMatrix, rotation_exponents
from fheverify.rng import RandomSource


class TestSecretKey:
    """Tests for Hamming-weight secret keys."""

    def test_exact_weight(self, small_context, engine, rng):
        sk = KeyManager(engine, rng).generate_secret_key(small_context, 16)
        assert sk.material.shape == (30,)
        assert sk.hamming_weight() == 16
        assert set(np.unique(sk.material).tolist()) <= {-1, 0, 1}

    def test_full_weight(self, small_context, engine, rng):
        sk = KeyManager(engine, rng).generate_secret_key(small_context, 30)
        assert sk.hamming_weight() == 30

    @pytest.mark.parametrize("weight", [0, 31])
    def test_weight_out_of_range(self, small_context, engine, rng, weight):
        with pytest.raises(PreconditionError):
            KeyManager(engine, rng).generate_secret_key(small_context, weight)

    def test_deterministic_for_seed(self, small_context, engine):
        a = KeyManager(engine, RandomSource(9)).generate_secret_key(small_context, 16)
        b = KeyManager(engine, RandomSource(9)).generate_secret_key(small_context, 16)
        assert np.array_equal(a.material, b.material)
        assert a.key_id == b.key_id

    def test_different_seeds_differ(self, small_context, engine):
        a = KeyManager(engine, RandomSource(1)).generate_secret_key(small_context, 16)
        b = KeyManager(engine, RandomSource(2)).generate_secret_key(small_context, 16)
        assert a.key_id != b.key_id

    def test_material_not_in_repr(self, small_context, engine, rng):
        sk = KeyManager(engine, rng).generate_secret_key(small_context, 16)
        assert "material" not in repr(sk)


class TestPublicKey:
    """Tests for public key derivation."""

    def test_relinearization_matrix(self, small_context, engine, rng):
        manager = KeyManager(engine, rng)
        sk = manager.generate_secret_key(small_context, 16)
        pk = manager.derive_public_key(sk)
        assert pk.has_relinearization_key
        assert pk.key_switching[RELINEARIZATION].columns == len(small_context.chain.digits) == 2
        assert sk.public_key is pk
        assert pk.key_id == sk.public_key_id

    def test_encryption_of_zero(self, small_context, engine, rng):
        manager = KeyManager(engine, rng)
        pk = manager.derive_public_key(manager.generate_secret_key(small_context, 16))
        zero = pk.encryption_of_zero
        assert zero.level == small_context.levels
        assert zero.key_id == pk.key_id
        assert zero.noise_budget > 0

    def test_derive_is_idempotent(self, small_context, engine, rng):
        manager = KeyManager(engine, rng)
        sk = manager.generate_secret_key(small_context, 16)
        assert manager.derive_public_key(sk) is manager.derive_public_key(sk)

    def test_no_rotation_keys_initially(self, small_context, engine, rng):
        manager = KeyManager(engine, rng)
        pk = manager.derive_public_key(manager.generate_secret_key(small_context, 16))
        assert not pk.has_rotation_keys
        assert pk.rotation_exponents == ()

    def test_key_switching_view_is_read_only(self, small_keys):
        _, pk = small_keys
        with pytest.raises(TypeError):
            pk.key_switching[5] = KeySwitchingMatrix.from_power("x", 5, 2)


class TestRotationKeys:
    """Tests for rotation key-switching matrices."""

    def test_exponents_for_bad_dimension(self):
        """Bad dimensions need g^(2^j) and their inverses."""
        assert rotation_exponents(3, -6, 31) == [3, 21, 9, 7, 19, 18]

    def test_exponents_for_good_dimension(self):
        assert rotation_exponents(3, 4, 31) == [3, 9]

    def test_installed(self, small_keys):
        _, pk = small_keys
        assert pk.has_rotation_keys
        assert pk.rotation_exponents == (3, 7, 9, 18, 19, 21)

    def test_adding_twice_changes_nothing(self, small_keys, engine, rng):
        sk, pk = small_keys
        fingerprint = pk.get_fingerprint()
        KeyManager(engine, rng).add_rotation_keys(sk)
        assert pk.get_fingerprint() == fingerprint
        assert len(pk.key_switching) == 7

    def test_matrix_digests(self):
        matrix = KeySwitchingMatrix.from_power("abc", 9, 3)
        assert matrix.columns == 3
        assert len(set(matrix.digests)) == 3
        assert not matrix.is_relinearization
        assert KeySwitchingMatrix.from_power("abc", 9, 3) == matrix

"""
Tests for the toy simulation engine and the engine factory.
"""

import dataclasses

import pytest

from fheverify.engine import ENGINES, FHEEngine, ToyEngine, create_engine, register_engine
from fheverify.errors import (
    ConfigurationError,
    KeyMismatchError,
    LevelBudgetExhaustedError,
    MissingRotationKeysError,
    NoiseBudgetExhaustedError,
)
from fheverify.keys import KeyManager
from fheverify.parameters import ParameterRequest, ParameterSelector
from fheverify.rng import RandomSource
from fheverify.slots import SlotVector


class TestEngineFactory:
    """Tests for create_engine."""

    def test_toy_is_default(self):
        assert isinstance(create_engine(), ToyEngine)

    def test_unknown_engine(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_engine("seal")
        assert exc_info.value.code == "FV_CONFIG_INVALID"

    def test_register_engine(self):
        class Named(ToyEngine):
            name = "named"

        register_engine("named", Named)
        try:
            assert isinstance(create_engine("named"), Named)
        finally:
            ENGINES.pop("named")

    def test_register_rejects_non_engine(self):
        with pytest.raises(TypeError):
            register_engine("bogus", object)

    def test_toy_warns(self, caplog):
        with caplog.at_level("WARNING", logger="fheverify.engine.toy"):
            ToyEngine()
        assert any("NOT CRYPTOGRAPHICALLY SECURE" in r.getMessage() for r in caplog.records)

    def test_is_engine(self):
        assert issubclass(ToyEngine, FHEEngine)


class TestToyEngine:
    """Tests for encrypted slot-wise evaluation."""

    @pytest.fixture
    def vectors(self, small_context):
        rng = RandomSource(21)
        return SlotVector.random(small_context, rng), SlotVector.random(small_context, rng)

    def test_round_trip(self, engine, small_keys, vectors):
        """decrypt(encrypt(v)) == v."""
        sk, pk = small_keys
        a, _ = vectors
        assert engine.decrypt(sk, engine.encrypt(pk, a)) == a

    def test_round_trip_default_context(self, engine, default_context):
        manager = KeyManager(engine, RandomSource(0))
        sk = manager.generate_secret_key(default_context, 64)
        pk = manager.derive_public_key(sk)
        vec = SlotVector.random(default_context, RandomSource(1))
        assert engine.decrypt(sk, engine.encrypt(pk, vec)) == vec

    def test_fresh_level(self, engine, small_keys, small_context, vectors):
        _, pk = small_keys
        ct = engine.encrypt(pk, vectors[0])
        assert ct.level == small_context.levels
        assert ct.noise_budget == pytest.approx(ToyEngine.fresh_budget(small_context, small_context.levels))

    def test_add_sub_negate(self, engine, small_keys, vectors):
        sk, pk = small_keys
        a, b = vectors
        ca, cb = engine.encrypt(pk, a), engine.encrypt(pk, b)
        assert engine.decrypt(sk, engine.add(ca, cb)) == a + b
        assert engine.decrypt(sk, engine.sub(ca, cb)) == a - b
        assert engine.decrypt(sk, engine.negate(ca)) == -a
        assert engine.decrypt(sk, engine.add(ca, b)) == a + b

    def test_multiply_consumes_level(self, engine, small_keys, vectors):
        sk, pk = small_keys
        a, b = vectors
        ca, cb = engine.encrypt(pk, a), engine.encrypt(pk, b)
        product = engine.multiply(ca, cb)
        assert product.level == ca.level - 1
        assert product.noise_budget < ca.noise_budget
        assert engine.decrypt(sk, product) == a * b

    def test_constant_multiply_keeps_level(self, engine, small_keys, vectors):
        sk, pk = small_keys
        a, b = vectors
        ca = engine.encrypt(pk, a)
        product = engine.multiply(ca, b)
        assert product.level == ca.level
        assert engine.decrypt(sk, product) == a * b

    def test_rotate_and_shift(self, engine, small_keys, vectors):
        sk, pk = small_keys
        a, _ = vectors
        ca = engine.encrypt(pk, a)
        for amount in (-5, -1, 0, 2, 5):
            assert engine.decrypt(sk, engine.rotate(ca, amount)) == a.rotate(amount)
        for amount in (-3, -1, 0, 1, 3):
            assert engine.decrypt(sk, engine.shift(ca, amount)) == a.shift(amount)

    def test_rotation_without_keys(self, engine, small_context, vectors):
        manager = KeyManager(engine, RandomSource(4))
        pk = manager.derive_public_key(manager.generate_secret_key(small_context, 16))
        ct = engine.encrypt(pk, vectors[0])
        with pytest.raises(MissingRotationKeysError):
            engine.rotate(ct, 1)
        with pytest.raises(MissingRotationKeysError):
            engine.shift(ct, 1)

    def test_key_mismatch(self, engine, small_keys, small_context, vectors):
        sk, pk = small_keys
        manager = KeyManager(engine, RandomSource(99))
        other_sk = manager.generate_secret_key(small_context, 16)
        other_pk = manager.derive_public_key(other_sk)
        ca = engine.encrypt(pk, vectors[0])
        cb = engine.encrypt(other_pk, vectors[1])
        with pytest.raises(KeyMismatchError):
            engine.add(ca, cb)
        with pytest.raises(KeyMismatchError):
            engine.decrypt(other_sk, ca)

    def test_levels_exhausted(self, engine):
        context = ParameterSelector().select(ParameterRequest(chosen_m=31, levels=1, hamming_weight=16))
        manager = KeyManager(engine, RandomSource(5))
        sk = manager.generate_secret_key(context, 16)
        pk = manager.derive_public_key(sk)
        ct = engine.encrypt(pk, SlotVector.random(context, RandomSource(6)))
        once = engine.multiply(ct, ct)
        assert once.level == 0
        with pytest.raises(LevelBudgetExhaustedError):
            engine.multiply(once, once)

    def test_exhausted_noise_budget(self, engine, small_keys, vectors):
        sk, pk = small_keys
        ct = dataclasses.replace(engine.encrypt(pk, vectors[0]), noise_budget=0.0)
        with pytest.raises(NoiseBudgetExhaustedError):
            engine.decrypt(sk, ct)

    def test_normalize_idempotent(self, engine, small_keys, vectors):
        sk, pk = small_keys
        a, b = vectors
        ct = engine.add(engine.encrypt(pk, a), engine.encrypt(pk, b))
        assert not ct.canonical
        once = engine.normalize(ct)
        twice = engine.normalize(once)
        assert once.canonical and twice.canonical
        assert twice.level == once.level
        assert twice.noise_budget == once.noise_budget
        assert engine.decrypt(sk, twice) == engine.decrypt(sk, once) == a + b

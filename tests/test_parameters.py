"""
Tests for parameter selection.

Covers the level-budget heuristic, the phi(m) bound, the algebraic index
search, the modulus chain and the security estimate.
"""

import math

import pytest

from fheverify.errors import IrreduciblePolynomialError, ParameterInfeasibleError
from fheverify.parameters import (
    P2_INDEX_TABLE,
    P_SIZE,
    ParameterRequest,
    ParameterSelector,
    build_modulus_chain,
    derive_level_budget,
    estimate_security,
    find_m,
    phi_lower_bound,
    split_digits,
)


class TestLevelBudget:
    """Tests for the 3R+3 level heuristic."""

    def test_default_budget(self):
        """R=1 over GF(2) gives six levels."""
        assert derive_level_budget(1, 2, 1) == 6

    def test_budget_grows_with_rounds(self):
        """Three levels per round for p=2, r=1."""
        assert derive_level_budget(2, 2, 1) == 9
        assert derive_level_budget(5, 2, 1) == 18

    def test_extra_level_for_larger_plaintext(self):
        """p > 2 adds addPerRound = 1 for small plaintext spaces."""
        assert derive_level_budget(1, 3, 1) == 7
        assert derive_level_budget(2, 2, 2) == 11

    def test_large_plaintext_adds_more(self):
        """addPerRound truncates 2*ceil(3 r ln p)/(60 ln 2) before adding 1."""
        add = int(2 * math.ceil(math.log(257) * 4 * 3) / (math.log(2.0) * 60)) + 1
        assert add == 4
        assert derive_level_budget(3, 257, 4) == 12 + 3 * add


class TestIndexSearch:
    """Tests for choosing the algebraic index m."""

    def test_phi_bound(self):
        """Bound for L=6, c=2, k=80."""
        assert phi_lower_bound(80, 6, 2) == 8313

    def test_bound_too_large(self):
        """Bounds beyond 2^60 are infeasible."""
        with pytest.raises(ParameterInfeasibleError):
            phi_lower_bound(10**18, 10**3, 1)

    def test_default_index(self):
        """The p=2 table yields m=10261 for the defaults."""
        assert find_m(80, 6, 2, 2, 1, 0) == 10261

    def test_explicit_index_validated(self):
        """An explicit m is returned unchanged when valid."""
        assert find_m(80, 6, 2, 2, 1, 0, chosen_m=31) == 31

    def test_explicit_index_sharing_factor_with_p(self):
        """gcd(p, m) must be 1."""
        with pytest.raises(ParameterInfeasibleError):
            find_m(80, 6, 2, 3, 1, 0, chosen_m=39)

    def test_explicit_index_degree_must_divide_order(self):
        """ord_31(2)=5 is not a multiple of 2."""
        with pytest.raises(ParameterInfeasibleError):
            find_m(80, 6, 2, 2, 2, 0, chosen_m=31)

    def test_explicit_index_too_few_slots(self):
        """m=31 has only six slots."""
        with pytest.raises(ParameterInfeasibleError):
            find_m(80, 6, 2, 2, 1, 7, chosen_m=31)

    def test_table_respects_min_slots(self):
        """Demanding more slots skips table entries that have too few."""
        m = find_m(80, 6, 2, 2, 1, 400)
        assert m in P2_INDEX_TABLE
        assert m == 15665

    def test_search_is_deterministic(self):
        """The same constraints always give the same m."""
        assert find_m(80, 6, 2, 2, 1, 0) == find_m(80, 6, 2, 2, 1, 0)


class TestModulusChain:
    """Tests for the ciphertext and special primes."""

    def test_chain_shape(self):
        """L+1 distinct primes, all 1 mod m, each of P_SIZE bits."""
        chain = build_modulus_chain(31, 6, 2, 16)
        assert len(chain.primes) == 7
        assert len(set(chain.primes + chain.special_primes)) == len(chain.primes) + len(chain.special_primes)
        for q in chain.primes + chain.special_primes:
            assert q % 31 == 1
            assert q.bit_length() == P_SIZE

    def test_moduli_increase(self):
        """q_0 < q_1 < ... < q_L."""
        chain = build_modulus_chain(31, 4, 2, 16)
        moduli = chain.moduli()
        assert all(a < b for a, b in zip(moduli, moduli[1:]))
        assert chain.top_level == 4

    def test_special_primes_cover_largest_digit(self):
        """Special primes outweigh the largest digit times sqrt(c/w)*sigma."""
        chain = build_modulus_chain(31, 6, 3, 16)
        largest = max(sum(math.log2(q) for q in digit) for digit in chain.digits)
        assert chain.special_bits >= largest + math.log2(math.sqrt(3 / 16) * 3.2)

    def test_split_digits(self):
        """Digits are contiguous and near-equal."""
        assert split_digits((1, 2, 3, 4, 5, 6, 7), 2) == ((1, 2, 3, 4), (5, 6, 7))
        assert split_digits((1, 2), 5) == ((1,), (2,))

    def test_security_formula(self):
        """7.2 phi / log2(QP) - 110."""
        chain = build_modulus_chain(31, 2, 1, 16)
        assert estimate_security(9900, chain) == pytest.approx(7.2 * 9900 / chain.total_bits - 110)


class TestParameterSelector:
    """Tests for full context derivation."""

    def test_default_context(self, default_context):
        """Defaults give L=6, m=10261, 330 slots."""
        assert default_context.levels == 6
        assert default_context.m == 10261
        assert default_context.phi_m == 9900
        assert default_context.algebra.ord_p == 30
        assert default_context.nslots == 330

    def test_default_generators_cover_slots(self, default_context):
        """Product of |ords| is the slot count."""
        assert math.prod(abs(o) for o in default_context.ords) == default_context.nslots
        assert all(abs(o) > 1 for o in default_context.ords)

    def test_default_security(self, default_context):
        """The default chain reaches the 80-bit target."""
        assert default_context.security_level >= 80

    def test_context_hash_deterministic(self, default_context):
        """Re-deriving the same request gives an identical context."""
        again = ParameterSelector().select(ParameterRequest())
        assert again.get_hash() == default_context.get_hash()
        assert again == default_context

    def test_explicit_levels(self):
        """An explicit L overrides the heuristic."""
        context = ParameterSelector().select(ParameterRequest(chosen_m=31, levels=2, hamming_weight=16))
        assert context.levels == 2
        assert len(context.chain.primes) == 3

    def test_lifting_sets_plaintext_modulus(self):
        """t = p^r."""
        context = ParameterSelector().select(ParameterRequest(chosen_m=31, r=3, hamming_weight=16))
        assert context.plaintext_modulus == 8
        assert context.levels == 3 * 1 + 3 + 1

    def test_extension_degree(self):
        """d=5 over GF(2) picks X^5+X^2+1 as the slot polynomial."""
        context = ParameterSelector().select(ParameterRequest(chosen_m=31, d=5, hamming_weight=16))
        assert context.d == 5
        assert context.slot_poly == (1, 0, 1, 0, 0, 1)

    def test_ords_without_gens(self):
        """Orders alone are infeasible."""
        with pytest.raises(ParameterInfeasibleError):
            ParameterSelector().select(ParameterRequest(chosen_m=31, ords=[6]))

    def test_composite_base_rejected(self):
        """No irreducible polynomial over a non-prime base."""
        with pytest.raises(IrreduciblePolynomialError):
            ParameterSelector().select(ParameterRequest(chosen_m=35, p=4))

    def test_request_validation(self):
        """R must be positive."""
        with pytest.raises(ParameterInfeasibleError):
            ParameterRequest(rounds=0)

    def test_low_security_warns(self, caplog):
        """A tiny index cannot reach the target and logs a warning."""
        with caplog.at_level("WARNING", logger="fheverify.parameters"):
            context = ParameterSelector().select(ParameterRequest(chosen_m=31, hamming_weight=16))
        assert context.security_level < 80
        assert any("below the requested" in r.getMessage() for r in caplog.records)

    def test_levels_below_depth(self):
        """An explicit L shallower than the required depth is infeasible."""
        request = ParameterRequest(chosen_m=31, levels=1, hamming_weight=16, min_depth=2)
        with pytest.raises(ParameterInfeasibleError) as excinfo:
            ParameterSelector().select(request)
        assert excinfo.value.details["constraints"]["depth"] == 2
        context = ParameterSelector().select(ParameterRequest(chosen_m=31, levels=2, hamming_weight=16, min_depth=2))
        assert context.levels == 2

"""
Tests for the three state-mutating operations: transfer, recovery, expansion.

Scenarios A-D walk a 3-member economy (diag=0.2, off=0.4) through one like,
one recovery step and one new member.
"""

import numpy as np
import pytest

from picsy.errors import (
    InsufficientBudgetError,
    InvalidDeltaError,
    InvalidRateError,
    NegativeAllocationError,
    SelfTransferError,
    TransferError,
    UnknownParticipantError,
    DimensionMismatchError,
)
from picsy.matrix_ops import normalize_rows, row_sum_error, uniform_matrix
from picsy.membership import expand_matrix, expand_membership, expansion_warm_start
from picsy.recovery import RecoveryEngine, apply_recovery, clamp_rate
from picsy.solver import solve_contributions
from picsy.transfer import apply_transfer, likes_available, max_affordable_delta


@pytest.fixture
def scenario_a():
    E = uniform_matrix(3, 0.2, 0.4)
    return E, solve_contributions(E)


@pytest.fixture
def skewed():
    rng = np.random.default_rng(11)
    E = normalize_rows(rng.random((5, 5)))
    return E, solve_contributions(E)


# =============================================================================
# VALUE TRANSFER
# =============================================================================

class TestTransfer:

    def test_scenario_b(self, scenario_a):
        """transfer(b=0, s=1, δ=0.05) moves α=0.05 from budget to seller."""
        E, c = scenario_a
        E2, record = apply_transfer(E, c, 0, 1, 0.05)
        assert record.alpha == pytest.approx(0.05, abs=1e-9)
        assert np.allclose(E2[0], [0.15, 0.45, 0.40], atol=1e-9)
        assert E2[0].sum() == pytest.approx(1.0, abs=1e-12)

    def test_exactness_on_skewed_economy(self, skewed):
        E, c = skewed
        buyer = int(np.argmax(np.diag(E)))
        seller = (buyer + 1) % E.shape[0]
        delta = 0.001
        E2, record = apply_transfer(E, c, buyer, seller, delta)
        alpha = delta / c[buyer]
        assert record.alpha == pytest.approx(alpha)
        assert E2[buyer, buyer] == pytest.approx(E[buyer, buyer] - alpha, abs=1e-12)
        assert E2[buyer, seller] == pytest.approx(E[buyer, seller] + alpha, abs=1e-12)

        mask = np.ones_like(E, dtype=bool)
        mask[buyer, buyer] = False
        mask[buyer, seller] = False
        assert np.array_equal(E2[mask], E[mask])

    def test_input_not_mutated(self, scenario_a):
        E, c = scenario_a
        before = E.copy()
        apply_transfer(E, c, 0, 1, 0.05)
        assert np.array_equal(E, before)

    def test_record_fields(self, scenario_a):
        E, c = scenario_a
        _, record = apply_transfer(E, c, 1, 2, 0.03, post_id=7)
        assert (record.buyer, record.seller, record.post_id) == (1, 2, 7)
        assert record.delta == 0.03
        assert record.timestamp > 0
        assert record.record_id is None

    def test_self_transfer_rejected(self, scenario_a):
        E, c = scenario_a
        with pytest.raises(SelfTransferError):
            apply_transfer(E, c, 1, 1, 0.05)

    def test_negative_delta_rejected(self, scenario_a):
        E, c = scenario_a
        with pytest.raises(NegativeAllocationError) as exc_info:
            apply_transfer(E, c, 0, 1, -0.05)
        assert exc_info.value.alpha < 0

    def test_insufficient_budget_rejected(self, scenario_a):
        E, c = scenario_a
        with pytest.raises(InsufficientBudgetError) as exc_info:
            apply_transfer(E, c, 0, 1, 0.5)
        assert exc_info.value.budget == pytest.approx(0.2)

    def test_spending_entire_budget_allowed(self, scenario_a):
        E, c = scenario_a
        E2, _ = apply_transfer(E, c, 0, 2, max_affordable_delta(E, c, 0))
        assert E2[0, 0] == pytest.approx(0.0, abs=1e-12)
        assert row_sum_error(E2) < 1e-9

    def test_unknown_participant(self, scenario_a):
        E, c = scenario_a
        with pytest.raises(UnknownParticipantError):
            apply_transfer(E, c, 0, 3, 0.05)

    def test_errors_share_base_class(self, scenario_a):
        E, c = scenario_a
        for args in [(0, 0, 0.01), (0, 1, -1.0), (0, 1, 10.0), (5, 1, 0.01)]:
            with pytest.raises(TransferError):
                apply_transfer(E, c, *args)

    @pytest.mark.parametrize("delta", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_delta_rejected(self, scenario_a, delta):
        E, c = scenario_a
        before = E.copy()
        with pytest.raises(InvalidDeltaError):
            apply_transfer(E, c, 0, 1, delta)
        assert np.array_equal(E, before)

    def test_zero_delta_leaves_matrix_unchanged(self, scenario_a):
        E, c = scenario_a
        E2, record = apply_transfer(E, c, 0, 1, 0.0)
        assert record.alpha == 0.0
        assert np.array_equal(E2, E)
        assert row_sum_error(E2) < 1e-9

    @pytest.mark.parametrize("price", [0.0, -0.5, float("nan")])
    def test_unusable_buyer_contribution_rejected(self, scenario_a, price):
        """α = δ / c[b] is undefined when c[b] is zero, negative or NaN."""
        E, c = scenario_a
        c = c.copy()
        c[0] = price
        for delta in (0.0, 0.01):
            with pytest.raises(NegativeAllocationError):
                apply_transfer(E, c, 0, 1, delta)

    def test_likes_available(self, scenario_a):
        E, c = scenario_a
        assert likes_available(E, c, 0, 0.03) == 6
        assert likes_available(E, c, 0, 0.0) == 0


# =============================================================================
# NATURAL RECOVERY
# =============================================================================

class TestRecovery:

    def test_scenario_c(self, scenario_a):
        """Recovery γ=0.1 on Scenario B's row 0 gives [0.235, 0.405, 0.360]."""
        E, c = scenario_a
        E2, _ = apply_transfer(E, c, 0, 1, 0.05)
        E3 = apply_recovery(E2, 0.1)
        assert np.allclose(E3[0], [0.235, 0.405, 0.360], atol=1e-9)
        assert E3[0].sum() == pytest.approx(1.0, abs=1e-12)

    def test_monotonicity(self, skewed):
        E, _ = skewed
        E2 = apply_recovery(E, 0.05)
        n = E.shape[0]
        for i in range(n):
            assert E2[i, i] > E[i, i]
            for j in range(n):
                if i != j and E[i, j] > 0:
                    assert E2[i, j] < E[i, j]
        assert row_sum_error(E2) < 1e-9

    def test_zero_rate_is_noop(self, skewed):
        E, _ = skewed
        assert np.allclose(apply_recovery(E, 0.0), E, atol=1e-15)

    def test_repeated_recovery_approaches_identity(self, skewed):
        E, _ = skewed
        for _ in range(200):
            E = apply_recovery(E, 0.2)
        assert np.allclose(E, np.eye(E.shape[0]), atol=1e-6)

    @pytest.mark.parametrize("gamma", [-0.1, 1.0, 1.5])
    def test_invalid_rate(self, skewed, gamma):
        E, _ = skewed
        with pytest.raises(InvalidRateError):
            apply_recovery(E, gamma)

    def test_clamp_rate(self):
        assert clamp_rate(1.2) == 0.99
        assert clamp_rate(-3.0) == 0.0
        assert clamp_rate(0.3) == 0.3

    def test_engine_schedule(self):
        engine = RecoveryEngine(gamma=0.1, interval=5)
        assert [t for t in range(16) if engine.is_due(t)] == [5, 10, 15]


# =============================================================================
# MEMBERSHIP EXPANSION
# =============================================================================

class TestExpansion:

    def test_scenario_d(self, scenario_a):
        """N=3 → 4: budgets stay 0.2, new column ≈ 0.2667, new row ≈ 1/3."""
        E, c = scenario_a
        E2, c2, new_index, result = expand_membership(E, c)
        assert new_index == 3
        assert E2.shape == (4, 4)
        assert np.array_equal(np.diag(E2)[:3], np.diag(E))
        assert np.allclose(E2[:3, 3], 0.8 / 3, atol=1e-9)
        assert np.allclose(E2[3], [1 / 3, 1 / 3, 1 / 3, 0.0], atol=1e-9)
        assert abs(c2.sum() - 4) < 1e-6
        assert result.warm_started

    def test_newcomer_contribution_near_one(self, scenario_a):
        E, c = scenario_a
        _, c2, _, _ = expand_membership(E, c)
        assert c2[3] == pytest.approx(1.0, abs=1e-3)

    def test_budgets_bit_identical_on_skewed_economy(self, skewed):
        E, c = skewed
        E2, c2, _, _ = expand_membership(E, c)
        n = E.shape[0]
        for i in range(n):
            assert E2[i, i] == E[i, i]
        assert row_sum_error(E2) < 1e-9
        assert abs(c2.sum() - (n + 1)) < 1e-6

    def test_existing_relationships_diluted(self, skewed):
        E, c = skewed
        E2 = expand_matrix(E, c)
        n = E.shape[0]
        x = 1.0 / n
        for i in range(n):
            for j in range(n):
                if i != j:
                    assert E2[i, j] == pytest.approx((1 - x) * E[i, j], abs=1e-15)

    def test_growth_to_cap(self, scenario_a):
        E, c = scenario_a
        for _ in range(27):
            budgets = np.diag(E).copy()
            E, c, _, _ = expand_membership(E, c)
            assert np.array_equal(np.diag(E)[:len(budgets)], budgets)
        assert E.shape == (30, 30)
        assert abs(c.sum() - 30) < 1e-6
        assert row_sum_error(E) < 1e-9

    def test_old_matrix_untouched(self, scenario_a):
        E, c = scenario_a
        before = E.copy()
        expand_membership(E, c)
        assert np.array_equal(E, before)

    def test_warm_start_vector(self):
        ws = expansion_warm_start(np.array([1.0, 1.0, 1.0]))
        assert np.allclose(ws, 0.25)

    def test_single_member_grows_to_two(self):
        """N=1 → 2: x = 1, nothing to dilute, the lone budget stays put."""
        E = uniform_matrix(1, 0.2, 0.4)
        c = solve_contributions(E)
        assert np.array_equal(E, [[1.0]])

        E2, c2, new_index, _ = expand_membership(E, c)
        assert new_index == 1
        assert E2[0, 0] == E[0, 0]
        assert np.allclose(E2, [[1.0, 0.0], [1.0, 0.0]])
        assert row_sum_error(E2) < 1e-9
        assert np.all(E2 >= 0)
        assert abs(c2.sum() - 2) < 1e-6
        assert np.allclose(c2, [1.0, 1.0], atol=1e-6)

    def test_empty_population_rejected(self):
        with pytest.raises(DimensionMismatchError):
            expand_matrix(np.zeros((0, 0)), np.zeros(0))

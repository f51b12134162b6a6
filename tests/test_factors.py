"""Tests for variables, the variable context and tabular factors."""

import operator

import numpy as np
import numpy.testing as npt
import pytest

import ppelements as ppe

from ppelements.exceptions import (
    CyclicDependencyError,
    ImpossibleEvidenceError,
    UnsetFactorCellError,
    UnsupportedCapabilityError,
)


def test_variable_handles_are_memoized():
    context = ppe.VariableContext()
    weather = ppe.Select({"sun": 0.5, "rain": 0.3, "snow": 0.2})

    first = context.variable(weather)
    assert context.variable(weather) is first
    assert context.values(weather) is context.values(weather)
    assert first.domain == ("sun", "rain", "snow")
    assert first.index("rain") == 1
    assert "hail" not in first
    assert context.variables == (first,)

    # Separate runs get separate handles
    assert ppe.VariableContext().variable(weather) is not first


def test_shared_context_uses_same_tables():
    context = ppe.VariableContext(shared=True)
    coin = ppe.Flip(0.5)
    assert context.variable(coin) is context.variable(coin)


def test_select_factor_matches_probabilities():
    context = ppe.VariableContext()
    choice = ppe.Select({0: 0.2, 1: 0.3, 2: 0.5})

    [factor] = context.factors(choice)
    assert factor.variables == (context.variable(choice),)
    npt.assert_allclose(factor.weights, [0.2, 0.3, 0.5])

    # Each element contributes its factors once per context
    assert context.factors(choice) == []


def test_unset_cells_fail_loudly():
    context = ppe.VariableContext()
    coin = context.variable(ppe.Flip(0.5))
    factor = ppe.Factor([coin])
    factor.set((0,), 0.5)

    assert not factor.is_complete
    assert factor.get((0,)) == 0.5
    with pytest.raises(UnsetFactorCellError):
        factor.get((1,))
    with pytest.raises(UnsetFactorCellError):
        _ = factor.weights

    factor.set((1,), 0.5)
    assert factor.is_complete


def test_factor_argument_checks():
    context = ppe.VariableContext()
    coin = context.variable(ppe.Flip(0.5))

    with pytest.raises(ValueError):
        ppe.Factor([coin, coin])
    with pytest.raises(ValueError):
        ppe.Factor([coin]).set((0,), -1.0)
    with pytest.raises(ValueError):
        ppe.Factor([coin]).set((0,), float("nan"))
    with pytest.raises(IndexError):
        ppe.Factor([coin]).set((0, 1), 1.0)
    with pytest.raises(ValueError):
        ppe.Factor.from_weights([coin], np.ones(3))
    with pytest.raises(ValueError):
        ppe.Factor.from_weights([coin], np.array([0.5, -0.5]))


def test_product_and_sum_out():
    context = ppe.VariableContext()
    a = context.variable(ppe.Flip(0.5))
    b = context.variable(ppe.Select({1: 0.2, 2: 0.3, 3: 0.5}))

    f_a = ppe.Factor.from_weights([a], np.array([0.25, 0.75]))
    f_ab = ppe.Factor.from_weights(
        [b, a], np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    )

    joint = f_a.product(f_ab)
    assert joint.variables == (a, b)
    npt.assert_allclose(
        joint.weights, [[0.25, 0.75, 1.25], [1.5, 3.0, 4.5]]
    )

    marginal = joint.sum_out(b)
    assert marginal.variables == (a,)
    npt.assert_allclose(marginal.weights, [2.25, 9.0])

    with pytest.raises(ValueError):
        marginal.sum_out(b)

    npt.assert_allclose(marginal.normalized().weights, [0.2, 0.8])


def test_normalizing_an_all_zero_factor():
    context = ppe.VariableContext()
    coin = context.variable(ppe.Flip(0.5))
    with pytest.raises(ImpossibleEvidenceError):
        ppe.Factor.from_weights([coin], np.zeros(2)).normalized()


def test_apply_values_are_deduplicated():
    context = ppe.VariableContext()
    die = ppe.Select({1: 0.2, 2: 0.3, 3: 0.5})
    parity = ppe.Apply(lambda x: x % 2, die)

    assert context.values(parity) == (1, 0)

    [factor] = context.factors(parity)
    assert factor.variables == (context.variable(die), context.variable(parity))
    npt.assert_array_equal(factor.weights, [[1.0, 0.0], [0.0, 1.0], [1.0, 0.0]])


def test_apply_over_several_parents():
    context = ppe.VariableContext()
    first = ppe.Select({1: 0.5, 2: 0.5})
    second = ppe.Select({1: 0.5, 2: 0.5})
    total = ppe.operations.add(first, second)

    assert context.values(total) == (2, 3, 4)
    [factor] = context.factors(total)
    assert factor.weights.shape == (2, 2, 3)
    npt.assert_array_equal(factor.weights.sum(axis=-1), np.ones((2, 2)))


def test_chain_values_are_union_of_subordinates():
    context = ppe.VariableContext()
    coin = ppe.Flip(0.5)
    branch = ppe.chain(
        coin, lambda v: ppe.Select({"a": 0.5, "b": 0.5}) if v else ppe.Constant("c")
    )
    assert context.values(branch) == ("a", "b", "c")


def test_cyclic_enumeration_is_detected():
    context = ppe.VariableContext()
    coin = ppe.Flip(0.5)
    holder = {}
    holder["chain"] = ppe.chain(
        coin, lambda v: ppe.Apply(operator.not_, holder["chain"])
    )
    with pytest.raises(CyclicDependencyError):
        context.values(holder["chain"])


def test_enumeration_requires_capability():
    context = ppe.VariableContext()
    height = ppe.Normal(170.0, 10.0)
    with pytest.raises(UnsupportedCapabilityError):
        context.values(height)
    with pytest.raises(UnsupportedCapabilityError):
        context.factors(height)


def test_evidence_factor():
    context = ppe.VariableContext()
    die = ppe.Select({1: 0.25, 2: 0.25, 3: 0.25, 4: 0.25})
    assert context.evidence_factor(die) is None

    die.set_condition(lambda v: v > 2)
    npt.assert_array_equal(context.evidence_factor(die).weights, [0, 0, 1, 1])

    factors = context.factors(die)
    assert len(factors) == 2
    npt.assert_allclose(factors[0].weights, [0.25] * 4)


def test_observation_factor():
    context = ppe.VariableContext()
    coin = ppe.Flip(0.3)
    coin.observe(False)
    npt.assert_array_equal(context.evidence_factor(coin).weights, [0.0, 1.0])

"""Tests for the generation protocol, built-in elements and evidence."""

import numpy as np
import pytest

from scipy import integrate

import ppelements as ppe

from ppelements.exceptions import UnsupportedCapabilityError
from ppelements.model.components.capabilities import Capability


@pytest.mark.parametrize(
    "element_factory",
    [
        lambda: ppe.Flip(0.3),
        lambda: ppe.Select({"a": 0.1, "b": 0.6, "c": 0.3}),
        lambda: ppe.Binomial(7, 0.35),
        lambda: ppe.Constant(4),
    ],
)
def test_discrete_density_sums_to_one(element_factory):
    element = element_factory()
    support = element.make_values(ppe.VariableContext())
    assert sum(element.density(value) for value in support) == pytest.approx(1.0)


@pytest.mark.parametrize(
    "element, bounds",
    [
        (lambda: ppe.Normal(1.5, 0.7), (-np.inf, np.inf)),
        (lambda: ppe.Exponential(2.5), (0, np.inf)),
        (lambda: ppe.BetaParameter(2.0, 5.0), (0, 1)),
    ],
)
def test_continuous_density_integrates_to_one(element, bounds):
    element = element()
    total, _ = integrate.quad(element.density, *bounds)
    assert total == pytest.approx(1.0, abs=1e-6)


def test_density_outside_support_is_zero():
    assert ppe.Flip(0.3).density("heads") == 0.0
    assert ppe.Select({"a": 1.0}).density("z") == 0.0
    assert ppe.Select({"a": 1.0}).density(["unhashable"]) == 0.0
    assert ppe.Binomial(3, 0.5).density(4) == 0.0
    assert ppe.Binomial(3, 0.5).density(True) == 0.0
    assert ppe.Binomial(3, 0.5).density(1) == pytest.approx(0.375)
    assert ppe.Exponential(1.0).density(-1.0) == 0.0
    assert ppe.Constant(2).density(3) == 0.0


def test_invalid_arguments():
    with pytest.raises(ValueError):
        ppe.Flip(1.5)
    with pytest.raises(ValueError):
        ppe.Select({"a": 0.5, "b": 0.2})
    with pytest.raises(ValueError):
        ppe.Select({})
    with pytest.raises(ValueError):
        ppe.Binomial(-1, 0.5)
    with pytest.raises(ValueError):
        ppe.Normal(0.0, 0.0)
    with pytest.raises(ValueError):
        ppe.Exponential(-2.0)


def test_generation_is_reproducible_with_seed():
    ppe.manual_seed(7)
    first = [ppe.Normal(0.0, 1.0).generate_randomness() for _ in range(5)]
    ppe.manual_seed(7)
    second = [ppe.Normal(0.0, 1.0).generate_randomness() for _ in range(5)]
    assert first == second


def test_generate_value_is_referentially_consistent():
    weather = ppe.Select({"sun": 0.5, "rain": 0.3, "snow": 0.2})
    assert weather.generate_value(0.1) == "sun"
    assert weather.generate_value(0.6) == "rain"
    assert weather.generate_value(0.95) == "snow"
    assert weather.generate_value(0.6) == weather.generate_value(0.6)

    coin = ppe.Flip(0.3)
    assert coin.generate_value(0.2) is True
    assert coin.generate_value(0.8) is False


def test_generate_fresh_and_stale():
    coin = ppe.Flip(0.5)
    coin.generate()
    randomness = coin.randomness
    assert coin.value == (randomness < 0.5)

    coin.generate(fresh=False)
    assert coin.randomness == randomness


def test_constant_always_has_its_value():
    constant = ppe.Constant("x")
    assert constant.value == "x"
    constant.generate()
    assert constant.value == "x"
    assert constant.randomness is None


def test_selection_frequencies_follow_probabilities():
    weather = ppe.Select({"sun": 0.5, "rain": 0.3, "snow": 0.2})
    draws = []
    for _ in range(5000):
        weather.generate()
        draws.append(weather.value)
    assert draws.count("rain") / len(draws) == pytest.approx(0.3, abs=0.03)


def test_capabilities_are_collected_from_mixins():
    assert ppe.Flip.CAPABILITIES == frozenset(
        {Capability.ENUMERATION, Capability.FACTORS, Capability.CACHEABLE}
    )
    assert ppe.Normal.CAPABILITIES == frozenset({Capability.PROPOSAL})
    assert ppe.Apply.CAPABILITIES == frozenset(
        {Capability.ENUMERATION, Capability.FACTORS}
    )
    assert Capability.LEARNING in ppe.BetaParameter.CAPABILITIES
    assert Capability.PROPOSAL not in ppe.BetaParameter.CAPABILITIES


def test_capability_lookup():
    coin = ppe.Flip(0.5)
    assert coin.provides(Capability.FACTORS)
    assert coin.capability(Capability.FACTORS) is coin

    height = ppe.Normal(170.0, 10.0)
    assert not height.provides(Capability.ENUMERATION)
    with pytest.raises(UnsupportedCapabilityError):
        height.capability(Capability.ENUMERATION)


def test_observation_clamps_stochastic_elements():
    coin = ppe.Flip(0.3)
    coin.observe(True)
    assert coin.is_clamped
    for _ in range(10):
        coin.generate()
        assert coin.value is True
    assert coin.sample_weight() == pytest.approx(0.3)

    coin.unobserve()
    assert not coin.is_clamped
    assert not coin.has_evidence


def test_observation_on_deterministic_elements_is_a_check():
    coin = ppe.Flip(0.5)
    negated = ppe.operations.negate(coin)
    negated.observe(True)
    assert not negated.is_clamped

    coin.randomness, coin.value = 0.0, True
    negated.generate(fresh=False)
    assert negated.value is False
    assert negated.sample_weight() == 0.0


def test_conditions_and_constraints():
    die = ppe.Select({1: 0.25, 2: 0.25, 3: 0.25, 4: 0.25})
    die.set_condition(lambda v: v % 2 == 0)
    assert die.evidence_weight(3) == 0.0
    assert die.evidence_weight(2) == 1.0

    die.set_constraint(lambda v: v / 4)
    assert die.evidence_weight(2) == pytest.approx(0.5)
    assert die.evidence_weight(1) == 0.0

    die.set_condition(None).set_constraint(lambda v: -1.0)
    with pytest.raises(ValueError, match="negative"):
        die.evidence_weight(1)


def test_snapshot_and_restore():
    height = ppe.Normal(0.0, 1.0)
    height.generate()
    state = height.snapshot()
    before = height.value

    height.generate()
    height.restore(state)
    assert height.value == before
    assert height.randomness == before

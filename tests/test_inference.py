"""Tests for the inference engines."""

import operator

import pytest

import ppelements as ppe

from ppelements.exceptions import ImpossibleEvidenceError, UnsupportedCapabilityError

# Exact posterior P(rain | wet) of the sprinkler model
RAIN_GIVEN_WET = 0.2 / (1 - 0.8 * 0.6)

# Exact prior P(umbrella) of the weather model
UMBRELLA = 0.5 * 0.1 + 0.3 * 0.9 + 0.2 * 0.1


def test_variable_elimination_sprinkler(sprinkler_model):
    rain, sprinkler, _ = sprinkler_model
    ve = ppe.VariableElimination(rain, sprinkler).run()

    assert ve.has_run
    assert ve.probability(rain, True) == pytest.approx(RAIN_GIVEN_WET)
    assert ve.probability(sprinkler, True) == pytest.approx(0.4 / (1 - 0.8 * 0.6))
    assert sum(p for p, _ in ve.distribution(rain)) == pytest.approx(1.0)


def test_belief_propagation_is_exact_on_trees(sprinkler_model):
    rain, sprinkler, wet = sprinkler_model
    bp = ppe.BeliefPropagation(rain, sprinkler, wet).run()

    assert bp.probability(rain, True) == pytest.approx(RAIN_GIVEN_WET)
    assert bp.probability(wet, True) == pytest.approx(1.0)
    assert 1 <= bp.n_sweeps <= bp.iterations


def test_importance_sampling_approximates_exact(sprinkler_model):
    rain, _, _ = sprinkler_model
    sampler = ppe.ImportanceSampling(rain, n_samples=5000, progress_bar=False).run()

    assert sampler.probability(rain, True) == pytest.approx(RAIN_GIVEN_WET, abs=0.04)
    assert 0 < sampler.n_rejected < sampler.n_samples


def test_metropolis_hastings_approximates_exact(sprinkler_model):
    rain, _, wet = sprinkler_model
    sampler = ppe.MetropolisHastings(
        rain, wet, n_samples=10000, burn_in=500, progress_bar=False
    ).run()

    assert sampler.probability(rain, True) == pytest.approx(RAIN_GIVEN_WET, abs=0.05)
    assert sampler.probability(wet, True) == 1.0
    assert 0 < sampler.acceptance_rate <= 1


def test_chain_model_prior(weather_chain):
    weather, umbrella = weather_chain

    ve = ppe.VariableElimination(umbrella, weather).run()
    assert ve.probability(umbrella, True) == pytest.approx(UMBRELLA)
    assert ve.probability(weather, "rain") == pytest.approx(0.3)

    sampler = ppe.ImportanceSampling(umbrella, n_samples=5000, progress_bar=False)
    assert sampler.run().probability(umbrella, True) == pytest.approx(
        UMBRELLA, abs=0.03
    )


def test_chain_model_posterior(weather_chain):
    weather, umbrella = weather_chain
    umbrella.observe(True)

    ve = ppe.VariableElimination(weather).run()
    assert ve.probability(weather, "rain") == pytest.approx(0.3 * 0.9 / UMBRELLA)

    sampler = ppe.MetropolisHastings(
        weather, n_samples=20000, burn_in=500, progress_bar=False
    ).run()
    assert sampler.probability(weather, "rain") == pytest.approx(
        0.3 * 0.9 / UMBRELLA, abs=0.06
    )


def test_non_caching_chain_in_variable_elimination():
    coin = ppe.Flip(0.25)
    branch = ppe.chain(coin, lambda v: ppe.Flip(0.8 if v else 0.4), caching=False)

    ve = ppe.VariableElimination(branch).run()
    assert ve.probability(branch, True) == pytest.approx(0.25 * 0.8 + 0.75 * 0.4)


def test_chain_returning_its_parent():
    die = ppe.Select({1: 0.5, 2: 0.3, 3: 0.2})
    branch = ppe.chain(die, lambda v: die if v > 1 else ppe.Constant(0))

    ve = ppe.VariableElimination(branch).run()
    assert ve.probability(branch, 0) == pytest.approx(0.5)
    assert ve.probability(branch, 3) == pytest.approx(0.2)


def test_conditions_and_constraints_in_inference():
    die = ppe.Select({1: 0.25, 2: 0.25, 3: 0.25, 4: 0.25})
    die.set_condition(lambda v: v > 1)
    die.set_constraint(lambda v: float(v))

    ve = ppe.VariableElimination(die).run()
    assert ve.probability(die, 4) == pytest.approx(4 / 9)
    assert ve.probability(die, 1) == 0.0

    sampler = ppe.ImportanceSampling(die, n_samples=5000, progress_bar=False).run()
    assert sampler.probability(die, 4) == pytest.approx(4 / 9, abs=0.04)


def test_predicates_and_expectations():
    die = ppe.Select({1: 0.25, 2: 0.25, 3: 0.25, 4: 0.25})
    ve = ppe.VariableElimination(die).run()

    assert ve.probability(die, lambda v: v % 2 == 0) == pytest.approx(0.5)
    assert ve.expectation(die, float) == pytest.approx(2.5)
    assert ve.expectation(die, lambda v: v**2) == pytest.approx(7.5)


def test_impossible_evidence():
    coin = ppe.Flip(0.0)
    coin.observe(True)

    with pytest.raises(ImpossibleEvidenceError):
        ppe.VariableElimination(coin).run()
    with pytest.raises(ImpossibleEvidenceError):
        ppe.ImportanceSampling(coin, n_samples=50, progress_bar=False).run()


def test_contradictory_deterministic_evidence():
    coin = ppe.Flip(0.5)
    same = ppe.operations.equals(coin, coin)
    same.observe(False)

    with pytest.raises(ImpossibleEvidenceError):
        ppe.MetropolisHastings(coin, n_samples=10, progress_bar=False).run()


def test_factored_engines_require_enumerable_elements():
    height = ppe.Normal(170.0, 10.0)
    with pytest.raises(UnsupportedCapabilityError):
        ppe.VariableElimination(height).run()


def test_sampling_engines_handle_continuous_elements():
    height = ppe.Normal(0.0, 1.0)
    positive = ppe.Apply(lambda h: h > 0, height)

    sampler = ppe.MetropolisHastings(
        positive, n_samples=5000, burn_in=200, progress_bar=False
    ).run()
    assert sampler.probability(positive, True) == pytest.approx(0.5, abs=0.08)


def test_unrelated_elements_are_ignored():
    coin = ppe.Flip(0.3)
    ppe.Normal(0.0, 1.0)  # Not enumerable, but also not relevant

    ve = ppe.VariableElimination(coin).run()
    assert ve.probability(coin, True) == pytest.approx(0.3)


def test_distribution_access_errors():
    coin = ppe.Flip(0.3)
    other = ppe.Flip(0.6)
    ve = ppe.VariableElimination(coin)

    with pytest.raises(RuntimeError):
        ve.distribution(coin)
    ve.run()
    with pytest.raises(KeyError):
        ve.distribution(other)


def test_learning_elements_are_not_sampled():
    bias = ppe.BetaParameter(1.0, 1.0)
    coin = ppe.ParameterizedFlip(bias)

    engine = ppe.ImportanceSampling(coin, n_samples=10, progress_bar=False)
    assert bias not in engine.elements
    assert coin in engine.elements


@pytest.mark.parametrize(
    "engine_class", [ppe.VariableElimination, ppe.BeliefPropagation]
)
def test_querying_a_context_element(engine_class):
    def negated_coin(_):
        coin = ppe.Flip(0.75)
        return ppe.Apply(operator.not_, coin)

    branch = ppe.chain(ppe.Constant("fair"), negated_coin)
    branch.generate()
    negated = branch.subordinate

    engine = engine_class(negated).run()
    assert engine.probability(negated, True) == pytest.approx(0.25)


@pytest.mark.parametrize("caching", [True, False])
def test_querying_a_parameterized_context_element(caching):
    bias = ppe.BetaParameter(3.0, 1.0)
    weather = ppe.Flip(0.5)
    branch = ppe.chain(weather, lambda w: ppe.ParameterizedFlip(bias), caching)
    weather.generate()
    branch.generate()

    ve = ppe.VariableElimination(branch.subordinate).run()
    assert ve.probability(branch.subordinate, True) == pytest.approx(0.75)


def test_non_caching_chain_releases_elements_built_for_a_run():
    bias = ppe.BetaParameter(1.0, 1.0)
    weather = ppe.Flip(0.5)
    branch = ppe.chain(weather, lambda w: ppe.ParameterizedFlip(bias), caching=False)
    weather.generate()
    branch.generate()

    for _ in range(3):
        ppe.VariableElimination(branch).run()

    assert len(bias.parameterized_elements) <= 2
    assert [
        element for element in bias.parameterized_elements if element.active
    ] == [branch.subordinate]

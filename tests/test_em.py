"""Tests for expectation-maximization parameter learning."""

import numpy as np
import numpy.testing as npt
import pandas as pd
import pytest

import ppelements as ppe

from ppelements.exceptions import DimensionMismatchError


def observed_flips(parameter, n_true, n_false):
    flips = []
    for outcome in [True] * n_true + [False] * n_false:
        flip = ppe.ParameterizedFlip(parameter)
        flip.observe(outcome)
        flips.append(flip)
    return flips


def hidden_flips(parameter, n):
    """Hidden flips observed through a noisy sensor that reported True."""
    flips = []
    for _ in range(n):
        hidden = ppe.ParameterizedFlip(parameter)
        sensor = ppe.chain(hidden, lambda h: ppe.Flip(0.9 if h else 0.2))
        sensor.observe(True)
        flips.append(hidden)
    return flips


def test_fully_observed_flips_reach_fixed_point():
    bias = ppe.BetaParameter(1.0, 1.0, name="bias")
    observed_flips(bias, 7, 3)

    results = ppe.ExpectationMaximization(
        bias, iterations=3, progress_bar=False
    ).run()

    assert bias.expected_value == pytest.approx(2 / 3)
    assert bias.state.hyperparameters == pytest.approx((8.0, 4.0))
    assert results.n_iterations == 3
    assert results.history[0]["bias"] == 0.5
    assert results.history[-1]["bias"] == pytest.approx(results.history[-2]["bias"])


@pytest.mark.parametrize("engine", ["ve", "bp", "importance", "mh"])
def test_every_engine_learns_observed_flips(engine):
    bias = ppe.BetaParameter(2.0, 2.0)
    observed_flips(bias, 4, 4)

    engine_kwargs = (
        {"n_samples": 200, "progress_bar": False}
        if engine in {"importance", "mh"}
        else None
    )
    ppe.ExpectationMaximization(
        bias,
        iterations=2,
        engine=engine,
        engine_kwargs=engine_kwargs,
        progress_bar=False,
    ).run()

    assert bias.expected_value == pytest.approx(0.5)
    assert bias.state.hyperparameters == pytest.approx((6.0, 6.0))


def test_early_stopping_on_tolerance():
    bias = ppe.BetaParameter(1.0, 1.0)
    observed_flips(bias, 2, 5)

    results = ppe.ExpectationMaximization(
        bias, iterations=10, tolerance=1e-9, progress_bar=False
    ).run()

    assert results.n_iterations == 2
    assert results.converged(1e-9)
    assert results.last_change() == 0.0


def test_hidden_flips_increase_toward_evidence():
    bias = ppe.BetaParameter(1.0, 1.0, name="bias")
    hidden_flips(bias, 10)

    results = ppe.ExpectationMaximization(bias, iterations=5, progress_bar=False).run()

    trajectory = [values["bias"] for values in results.history]
    assert trajectory[0] == 0.5

    # Posterior of one hidden flip under the initial bias of one half
    first_posterior = 0.9 * 0.5 / (0.9 * 0.5 + 0.2 * 0.5)
    assert trajectory[1] == pytest.approx((1 + 10 * first_posterior) / 12)
    assert all(later > earlier for earlier, later in zip(trajectory, trajectory[1:]))
    assert trajectory[-1] < 1.0


def test_parameters_are_read_only_during_expectation():
    bias = ppe.BetaParameter(1.0, 1.0)
    hidden_flips(bias, 3)

    em = ppe.ExpectationMaximization(bias, progress_bar=False)
    statistics = em.expectation_step()

    assert bias.state == bias.prior
    npt.assert_allclose(statistics[bias].sum(), 3.0)


def test_maximization_commits_all_or_nothing():
    first = ppe.BetaParameter(1.0, 1.0)
    second = ppe.BetaParameter(1.0, 1.0)
    em = ppe.ExpectationMaximization(first, second, progress_bar=False)

    with pytest.raises(DimensionMismatchError):
        em.maximization_step({first: np.array([1.0, 1.0]), second: np.zeros(3)})
    assert first.state == first.prior


def test_dirichlet_learning_and_dataframe():
    mix = ppe.DirichletParameter(1.0, 1.0, 1.0, name="mix")
    for outcome in ["a", "a", "b", "c", "a"]:
        ppe.ParameterizedSelect(mix, ["a", "b", "c"]).observe(outcome)

    results = ppe.ExpectationMaximization(mix, iterations=2, progress_bar=False).run()
    npt.assert_allclose(mix.expected_value, [4 / 8, 2 / 8, 2 / 8])

    frame = results.to_dataframe()
    assert isinstance(frame, pd.DataFrame)
    assert list(frame.columns) == ["mix[0]", "mix[1]", "mix[2]"]
    assert frame.index.name == "iteration"
    assert len(frame) == 3
    assert frame["mix[0]"].iloc[0] == pytest.approx(1 / 3)
    assert frame["mix[0]"].iloc[-1] == pytest.approx(0.5)


def test_warns_when_tolerance_is_not_reached():
    bias = ppe.BetaParameter(1.0, 1.0)
    hidden_flips(bias, 5)

    with pytest.warns(UserWarning, match="did not converge"):
        ppe.ExpectationMaximization(
            bias, iterations=2, tolerance=1e-12, progress_bar=False
        ).run()


def test_invalid_arguments():
    bias = ppe.BetaParameter(1.0, 1.0)
    coin = ppe.Flip(0.5)

    with pytest.raises(ValueError):
        ppe.ExpectationMaximization()
    with pytest.raises(ValueError):
        ppe.ExpectationMaximization(coin)
    with pytest.raises(ValueError):
        ppe.ExpectationMaximization(bias, iterations=0)
    with pytest.raises(ValueError, match="Unknown engine"):
        ppe.ExpectationMaximization(bias, engine="gibbs")


def test_parameters_without_elements_keep_prior():
    bias = ppe.BetaParameter(3.0, 1.0)
    results = ppe.ExpectationMaximization(bias, iterations=2, progress_bar=False).run()
    assert bias.expected_value == 0.75
    assert results.last_change() == 0.0


def sensor_chain(parameter, caching):
    """Observed chain whose subordinate for every weather is a parameterized flip."""
    weather = ppe.Flip(0.5)
    sensor = ppe.chain(weather, lambda w: ppe.ParameterizedFlip(parameter), caching)
    sensor.observe(True)
    weather.generate()
    sensor.generate()
    return sensor


def test_parameterized_elements_inside_a_caching_chain():
    bias = ppe.BetaParameter(1.0, 1.0, name="bias")
    sensor_chain(bias, caching=True)

    results = ppe.ExpectationMaximization(bias, iterations=2, progress_bar=False).run()

    # The second iteration also learns from the subordinate built for the
    # other weather during the first one
    trajectory = [values["bias"] for values in results.history]
    assert trajectory == pytest.approx([0.5, 7 / 12, 31 / 48])
    assert len(bias.parameterized_elements) == 2


def test_parameterized_elements_inside_a_non_caching_chain():
    bias = ppe.BetaParameter(1.0, 1.0, name="bias")
    sensor = sensor_chain(bias, caching=False)

    results = ppe.ExpectationMaximization(bias, iterations=5, progress_bar=False).run()

    trajectory = [values["bias"] for values in results.history]
    assert trajectory[:3] == pytest.approx([0.5, 7 / 12, 43 / 72])
    assert len(bias.parameterized_elements) <= 2
    assert [
        element for element in bias.parameterized_elements if element.active
    ] == [sensor.subordinate]

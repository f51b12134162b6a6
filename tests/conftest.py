"""
Pytest configuration and shared fixtures.
"""

import pytest

import ppelements as ppe


@pytest.fixture(autouse=True)
def universe():
    """Seed the global generator and give every test an empty default universe."""
    ppe.manual_seed(1234)
    return ppe.reset_default_universe()


@pytest.fixture
def sprinkler_model():
    """Rain and sprinkler both wet the grass; the grass is observed wet."""
    rain = ppe.Flip(0.2, name="rain")
    sprinkler = ppe.Flip(0.4, name="sprinkler")
    wet = ppe.operations.logical_or(rain, sprinkler, name="wet")
    wet.observe(True)
    return rain, sprinkler, wet


@pytest.fixture
def weather_chain():
    """Umbrella use depends on the weather through a caching chain."""
    weather = ppe.Select({"sun": 0.5, "rain": 0.3, "snow": 0.2}, name="weather")
    umbrella = ppe.chain(
        weather,
        lambda w: ppe.Flip(0.9 if w == "rain" else 0.1),
        name="umbrella",
    )
    return weather, umbrella

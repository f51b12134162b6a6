"""Tests for element identity, naming and scoping."""

import pytest

import ppelements as ppe

from ppelements.exceptions import CyclicDependencyError, ScopeError


def test_elements_join_default_universe(universe):
    coin = ppe.Flip(0.5)
    assert coin.universe is universe
    assert ppe.get_default_universe() is universe
    assert universe.elements == (coin,)


def test_ids_are_unique_and_ordered(universe):
    first = ppe.Flip(0.5)
    second = ppe.Flip(0.5)
    assert first.id != second.id
    assert first.id.universe_id == second.id.universe_id == universe.id
    assert first.id.index < second.id.index


def test_default_names_use_class_and_index():
    coin = ppe.Flip(0.5)
    assert coin.name == f"Flip_{coin.id.index}"


def test_duplicate_names_are_rejected():
    ppe.Flip(0.5, name="coin")
    with pytest.raises(ValueError, match="coin"):
        ppe.Flip(0.5, name="coin")


def test_names_resolve_through_ancestors():
    outer = ppe.Universe("outer")
    rain = ppe.Flip(0.2, name="rain", universe=outer)
    inner = ppe.Universe("inner", parent=outer)

    assert inner["rain"] is rain
    assert "rain" in inner
    assert inner.get("missing") is None
    with pytest.raises(KeyError):
        inner["missing"]  # pylint: disable=pointless-statement
    assert inner.lineage == (inner, outer)


def test_arguments_must_be_visible():
    outer = ppe.Universe("outer")
    inner = ppe.Universe("inner", parent=outer)
    sibling = ppe.Universe("sibling", parent=outer)

    shared = ppe.Flip(0.5, universe=outer)
    hidden = ppe.Flip(0.5, universe=inner)

    # Ancestor references are fine
    ppe.operations.negate(shared, universe=inner)

    # Child and sibling references are not
    with pytest.raises(ScopeError):
        ppe.operations.negate(hidden, universe=outer)
    with pytest.raises(ScopeError):
        ppe.operations.negate(hidden, universe=sibling)


def test_reset_default_universe():
    old = ppe.get_default_universe()
    ppe.Flip(0.5, name="coin")
    new = ppe.reset_default_universe("fresh")

    assert new is not old
    assert new.name == "fresh"
    assert len(new) == 0
    ppe.Flip(0.5, name="coin")  # The name is free again


def test_deactivate_removes_name(universe):
    coin = ppe.Flip(0.5, name="coin")
    universe.deactivate(coin)
    assert not coin.active
    assert "coin" not in universe
    assert universe.elements == ()


def test_context_elements_are_owned_by_the_chain(universe, weather_chain):
    weather, umbrella = weather_chain
    subordinate = umbrella.get("rain")

    assert subordinate.owner is umbrella
    assert subordinate.universe is universe
    assert subordinate not in universe.elements
    assert universe.elements == (weather, umbrella)
    assert weather.owner is None


def test_walk_tree_reports_parents_and_children():
    rain = ppe.Flip(0.2, name="rain")
    sprinkler = ppe.Flip(0.4, name="sprinkler")
    wet = ppe.operations.logical_or(rain, sprinkler, name="wet")
    dry = ppe.operations.negate(wet, name="dry")

    assert [(depth, rel) for depth, _, rel in dry.walk_tree()] == [
        (1, wet),
        (2, rain),
        (2, sprinkler),
    ]
    assert [rel for _, _, rel in rain.walk_tree(walk_down=True)] == [wet, dry]
    assert rain.children == (wet,)
    assert wet.parents == (rain, sprinkler)


def test_walk_tree_detects_cycles():
    coin = ppe.Flip(0.5)
    loop = ppe.operations.negate(coin)

    # Rewire the apply onto itself to simulate a construction bug
    loop._args = (loop,)  # pylint: disable=protected-access
    with pytest.raises(CyclicDependencyError):
        loop.walk_tree()

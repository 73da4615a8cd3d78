"""Shared BDD fixtures and step definitions for stock reconciliation."""

import json

import pytest
from pytest_bdd import given, parsers, then


@pytest.fixture()
def scenario_state():
    """Mutable container for the product and order a scenario works on."""
    return {}


@given(parsers.parse('a product "{name}" with {units:d} units in stock'))
def _(scenario_state, make_product, name, units):
    scenario_state["product"] = make_product(name=name, stock=units)


@then(parsers.parse("the product has {expected:d} units in stock"))
def _(scenario_state, stock, expected):
    assert stock(scenario_state["product"].id) == expected


@then(parsers.parse('a stock update from {previous:d} to {new:d} was published for "{reason}"'))
def _(queue, previous, new, reason):
    events = [json.loads(message) for message in queue.pending("stock-updates")]
    assert {"previousStock": previous, "newStock": new, "updatedBy": reason}.items() <= events[-1].items()


@then(parsers.parse("{count:d} stock updates were published in total"))
def _(queue, count):
    assert len(queue.pending("stock-updates")) == count

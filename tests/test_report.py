"""Tests for `sitesurvey.report`."""

import json

import pytest

from sitesurvey import ledger as bom
from sitesurvey.ledger import Ledger
from sitesurvey.model import Address, InfrastructureTree
from sitesurvey.report import to_report_model


def test_report_shape_and_totals(sample_tree, switch_product, install_service):
    ledger, switch = bom.add_item(
        Ledger(), switch_product, quantity=2, address=Address.for_room(0, 0, 1), margin=10
    )
    ledger, _ = bom.add_item(ledger, install_service)

    report = to_report_model(sample_tree, ledger)

    assert {"buildings", "products", "services", "totals"} <= set(report)
    assert report["totals"]["grand"]["total"] == pytest.approx(270.0)
    assert report["products"][0]["id"] == switch.id
    assert report["products"][0]["location"] == "HQ → Ground → Server"
    assert report["services"][0]["location"] == "Unassigned"
    assert list(report["productsByBrand"]) == ["Acme"]
    assert report["totalsByBuilding"]["0"]["total"] == pytest.approx(220.0)
    assert report["totalsByBuilding"]["site"]["total"] == pytest.approx(50.0)


def test_report_building_stats(sample_tree):
    report = to_report_model(sample_tree)
    hq = report["buildings"][0]
    assert hq["name"] == "HQ"
    assert hq["stats"]["totalOutlets"] == 20
    assert report["summary"]["totalOutlets"] == 22
    assert report["summary"]["percentFiberTerminated"] == 50.0


def test_report_marks_stale_binding_unassigned(sample_tree, switch_product):
    ledger, _ = bom.add_item(Ledger(), switch_product, address=Address.for_room(0, 5, 0))
    report = to_report_model(sample_tree, ledger)
    assert report["products"][0]["location"] == "Unassigned"


def test_empty_report_is_json_safe():
    report = to_report_model(InfrastructureTree())
    assert json.loads(json.dumps(report)) == report
    assert report["totals"]["grand"]["total"] == 0.0
    assert report["products"] == []
    assert report["totalsByBuilding"] == {}

"""Tests for `sitesurvey.io`: parsing, schema validation and the file store."""

import json

import pytest

from sitesurvey.exceptions import NotFoundError, ValidationError
from sitesurvey.io import (
    FileSurveyStore,
    dump_survey,
    load_schema,
    load_survey_dict,
    load_survey_text,
)
from sitesurvey.ledger import Ledger
from sitesurvey.survey import SiteSurvey

SURVEY_YAML = """
name: Demo
buildings:
  - name: HQ
    centralRack:
      name: MDF
      fiberTerminations:
        - {type: OS2, totalStrands: 12, terminatedStrands: 6}
    floors:
      - name: Ground
        floorRacks:
          - name: IDF-1
        rooms:
          - name: Office
            outlets: 4
            isTypicalRoom: true
            identicalRoomsCount: 3
            connectionType: FLOOR_RACK
  - name: Warehouse
buildingConnections:
  - {fromBuilding: 0, toBuilding: 1, connectionType: FIBER, distance: 120}
equipment:
  - id: product-sw-1
    type: product
    itemId: sw
    name: Switch
    quantity: 2
    price: 100
    margin: 10
    infrastructureElement: {type: floor, buildingIndex: 0, floorIndex: 0, buildingName: HQ}
  - id: service-inst-1
    type: service
    itemId: inst
    name: Installation
    price: 50
"""


def test_load_yaml_survey():
    survey = SiteSurvey.from_yaml(SURVEY_YAML)
    assert survey.name == "Demo"
    assert survey.stats().outlets == 12
    assert survey.summary().grand.total == pytest.approx(270.0)
    assert survey.tree.buildings[0].central_rack.fiber_terminations[0].percent_terminated == 50


def test_empty_document_is_empty_survey():
    data = load_survey_text("")
    assert data == {"buildings": [], "buildingConnections": [], "equipment": []}


def test_json_text_accepted():
    data = load_survey_text(json.dumps({"buildings": [{"name": "HQ"}]}))
    assert data["buildings"][0]["name"] == "HQ"


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "buildings: {}\n",
        "buildings:\n  - code: X\n",
        "unknown: 1\n",
        "buildings: [{name: A, floors: [{name: F, rooms: [{name: R, outlets: -1}]}]}]\n",
        "equipment: [{id: a, name: A, quantity: 0}]\n",
        "equipment: [{id: a, name: A, infrastructureElement: {type: attic}}]\n",
        "buildings: [\n",
    ],
)
def test_invalid_documents_rejected(text):
    with pytest.raises(ValidationError):
        load_survey_text(text)


def test_packaged_schema_loads():
    schema = load_schema()
    assert schema["type"] == "object"
    assert "equipmentItem" in schema["definitions"]


def test_dumped_payload_validates(sample_tree, switch_product):
    survey = SiteSurvey(tree=sample_tree)
    survey.add_item(switch_product, quantity=3)
    for fmt in ("json", "yaml"):
        text = dump_survey(survey.to_dict(), fmt)
        reloaded = SiteSurvey.from_dict(load_survey_text(text))
        assert reloaded.tree == survey.tree
        assert reloaded.ledger == survey.ledger
    with pytest.raises(ValueError):
        dump_survey({}, "xml")


def test_load_survey_dict_fills_sections():
    assert load_survey_dict({"name": "x"})["equipment"] == []


def test_file_store_round_trip(tmp_path, sample_tree):
    store = FileSurveyStore(tmp_path / "surveys")
    assert store.list_ids() == []

    survey = SiteSurvey(tree=sample_tree, ledger=Ledger(), id="site-1")
    survey.save(store)
    assert store.list_ids() == ["site-1"]
    assert (tmp_path / "surveys" / "site-1.json").is_file()

    loaded = SiteSurvey.load(store, "site-1")
    assert loaded.id == "site-1"
    assert loaded.tree == sample_tree


def test_file_store_last_write_wins(tmp_path):
    store = FileSurveyStore(tmp_path)
    store.save("s", {"name": "first"})
    store.save("s", {"name": "second"})
    assert store.load("s")["name"] == "second"


def test_file_store_errors(tmp_path):
    store = FileSurveyStore(tmp_path)
    with pytest.raises(NotFoundError):
        store.load("missing")
    with pytest.raises(ValueError):
        store.save("../escape", {})

import json
from pathlib import Path

import pytest

from sitesurvey import cli

SURVEY = """
name: Demo site
buildings:
  - name: HQ
    code: HQ-1
    centralRack:
      name: MDF
      devices:
        - {name: Core switch, type: SWITCH}
    floors:
      - name: Ground
        level: 0
        floorRacks:
          - name: IDF-1
        rooms:
          - name: Office
            outlets: 4
            isTypicalRoom: true
            identicalRoomsCount: 3
  - name: Warehouse
buildingConnections:
  - {fromBuilding: 0, toBuilding: 1, connectionType: FIBER, distance: 120}
equipment:
  - id: product-sw-1
    type: product
    itemId: sw
    name: Switch
    brand: Acme
    quantity: 2
    price: 100
    margin: 10
    infrastructureElement: {type: floor, buildingIndex: 0, floorIndex: 0}
  - id: service-inst-1
    type: service
    itemId: inst
    name: Installation
    price: 50
"""


def extract_json_from_stdout(output: str) -> str:
    """Return the first balanced JSON object from stdout that may include log lines."""
    json_start = output.find("{")
    if json_start == -1:
        return output

    brace_count = 0
    json_end = -1
    for i in range(json_start, len(output)):
        if output[i] == "{":
            brace_count += 1
        elif output[i] == "}":
            brace_count -= 1
            if brace_count == 0:
                json_end = i + 1
                break

    if json_end == -1:
        return output

    return output[json_start:json_end]


@pytest.fixture
def survey_file(tmp_path: Path) -> Path:
    path = tmp_path / "survey.yaml"
    path.write_text(SURVEY)
    return path


def test_cli_inspect(survey_file: Path, capsys) -> None:
    cli.main(["inspect", str(survey_file)])
    out = capsys.readouterr().out
    assert "SITE SURVEY INSPECTION" in out
    assert "Name: Demo site" in out
    assert "Buildings: 2" in out
    assert "Outlets: 12" in out
    assert "HQ-1" in out
    assert "Warehouse" in out


def test_cli_inspect_reports_dangling_items(tmp_path: Path, capsys) -> None:
    path = tmp_path / "dangling.yaml"
    path.write_text(
        "buildings: [{name: HQ}]\n"
        "equipment:\n"
        "  - {id: x, name: X, infrastructureElement: {type: floor, buildingIndex: 0, floorIndex: 3}}\n"
    )
    cli.main(["--quiet", "inspect", str(path)])
    out = capsys.readouterr().out
    assert "1 equipment item(s) bound to missing elements" in out


def test_cli_bom_tables(survey_file: Path, capsys) -> None:
    cli.main(["bom", str(survey_file)])
    out = capsys.readouterr().out
    assert "BILL OF MATERIALS" in out
    assert "Products - Acme:" in out
    assert "Services:" in out
    assert "HQ → Ground" in out
    assert "Unassigned" in out
    assert "270.00" in out


def test_cli_bom_json(survey_file: Path, capsys) -> None:
    cli.main(["bom", "--json", str(survey_file)])
    data = json.loads(extract_json_from_stdout(capsys.readouterr().out))
    assert set(data) == {"products", "services", "totals"}
    assert data["totals"]["grand"]["total"] == pytest.approx(270.0)
    assert data["products"][0]["location"] == "HQ → Ground"


def test_cli_diagram_stdout(survey_file: Path, capsys) -> None:
    cli.main(["diagram", str(survey_file)])
    data = json.loads(extract_json_from_stdout(capsys.readouterr().out))
    ids = {node["id"] for node in data["nodes"]}
    assert {"site-survey-root", "b0", "b0-cr", "b0-f0", "b0-f0-room0", "b1"} <= ids
    assert any(edge["type"] == "buildingConnection" for edge in data["edges"])


def test_cli_diagram_output_file(survey_file: Path, tmp_path: Path, capsys) -> None:
    out_file = tmp_path / "out" / "diagram.json"
    cli.main(["diagram", str(survey_file), "--output", str(out_file)])
    assert out_file.is_file()
    data = json.loads(out_file.read_text())
    assert len(data["nodes"]) > 0
    assert f"Diagram written to: {out_file}" in capsys.readouterr().out


def test_cli_missing_file(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["inspect", str(tmp_path / "missing.yaml")])
    assert excinfo.value.code == 1
    assert "Survey file not found" in capsys.readouterr().out


def test_cli_invalid_survey(tmp_path: Path, capsys) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("buildings: [{name: HQ}]\nextra: true\n")
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["inspect", str(path)])
    assert excinfo.value.code == 1
    assert "ERROR: Invalid survey" in capsys.readouterr().out


def test_cli_no_args_prints_help(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 0
    assert "usage: sitesurvey" in capsys.readouterr().out


def test_cli_unknown_command() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["export", "survey.yaml"])
    assert excinfo.value.code == 2


def test_cli_rejects_broken_invariants(tmp_path: Path, capsys) -> None:
    path = tmp_path / "strands.yaml"
    path.write_text(
        "buildings:\n"
        "  - name: HQ\n"
        "    centralRack:\n"
        "      name: MDF\n"
        "      fiberTerminations: [{type: OS2, totalStrands: 12, terminatedStrands: 20}]\n"
    )
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["inspect", str(path)])
    assert excinfo.value.code == 1
    assert "exceed total strands" in capsys.readouterr().out

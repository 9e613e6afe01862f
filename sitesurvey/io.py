"""Survey persistence: YAML/JSON loading, schema validation and file storage.

The persistence payload is a mapping with ``buildings``,
``buildingConnections`` and ``equipment`` (plus optional ``id``/``name``).
Loading parses the text, runs early shape checks for clearer messages, then
validates the payload against the packaged JSON schema
``sitesurvey/schemas/survey.json``.
"""

from __future__ import annotations

import json
import re
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Protocol, Union

import jsonschema
import yaml

from sitesurvey.exceptions import NotFoundError, ValidationError
from sitesurvey.logging import get_logger

logger = get_logger(__name__)

#: Top-level keys accepted in a survey payload.
RECOGNIZED_KEYS = {"id", "name", "buildings", "buildingConnections", "equipment"}

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


def load_schema() -> Dict[str, Any]:
    """Return the packaged survey JSON schema."""
    with (
        resources.files("sitesurvey.schemas")
        .joinpath("survey.json")
        .open("r", encoding="utf-8")
    ) as f:
        return json.load(f)


def load_survey_dict(data: Any) -> Dict[str, Any]:
    """Validate a survey payload and return it.

    Args:
        data: Parsed payload; ``None`` is treated as an empty survey.

    Returns:
        The payload with missing sections filled in as empty lists.

    Raises:
        ValidationError: If the payload is not a mapping, has unknown
            top-level keys, or does not match the schema.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("A survey must map to a dictionary at top-level.")

    extra = set(data) - RECOGNIZED_KEYS
    if extra:
        raise ValidationError(
            f"Unrecognized top-level key(s) in survey: {', '.join(sorted(extra))}. "
            f"Allowed keys are {sorted(RECOGNIZED_KEYS)}"
        )

    # Early shape checks give better messages than the schema errors
    for key in ("buildings", "buildingConnections", "equipment"):
        section = data.get(key)
        if section is not None and not isinstance(section, list):
            raise ValidationError(f"'{key}' must be a list", field=key)
    for pos, building in enumerate(data.get("buildings") or []):
        if not isinstance(building, dict) or "name" not in building:
            raise ValidationError(
                f"Building {pos} must be a mapping with a 'name'", field="buildings"
            )

    try:
        jsonschema.validate(data, load_schema())
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ValidationError(f"Survey schema violation at {location}: {exc.message}") from exc

    result = dict(data)
    for key in ("buildings", "buildingConnections", "equipment"):
        result[key] = list(result.get(key) or [])
    return result


def load_survey_text(text: str) -> Dict[str, Any]:
    """Parse YAML or JSON text and validate it as a survey payload.

    Raises:
        ValidationError: On malformed YAML/JSON or an invalid payload.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValidationError(f"Could not parse survey: {exc}") from exc
    return load_survey_dict(data)


def load_survey_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read and validate a survey file (``.yaml``, ``.yml`` or ``.json``)."""
    path = Path(path)
    payload = load_survey_text(path.read_text(encoding="utf-8"))
    logger.debug("Loaded survey payload from %s", path)
    return payload


def dump_survey(payload: Dict[str, Any], fmt: str = "json") -> str:
    """Serialize a survey payload.

    Args:
        payload: Mapping as produced by ``SiteSurvey.to_dict``.
        fmt: ``"json"`` or ``"yaml"``.

    Returns:
        The serialized text.
    """
    if fmt == "json":
        return json.dumps(payload, indent=2, ensure_ascii=False)
    if fmt == "yaml":
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported survey format: {fmt}")


class SurveyStore(Protocol):
    """Persistence collaborator keyed by survey id."""

    def load(self, survey_id: str) -> Dict[str, Any]:
        """Return the stored payload for ``survey_id``."""
        ...

    def save(self, survey_id: str, payload: Dict[str, Any]) -> None:
        """Replace the stored payload for ``survey_id`` (last write wins)."""
        ...


class FileSurveyStore:
    """Stores each survey as ``<directory>/<survey_id>.json``."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path(self, survey_id: str) -> Path:
        if not _SAFE_ID.match(survey_id):
            raise ValueError(f"Invalid survey id: {survey_id!r}")
        return self.directory / f"{survey_id}.json"

    def list_ids(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def load(self, survey_id: str) -> Dict[str, Any]:
        """Load and validate a stored survey.

        Raises:
            NotFoundError: If no survey with ``survey_id`` is stored.
            ValidationError: If the stored payload is invalid.
        """
        path = self._path(survey_id)
        if not path.exists():
            raise NotFoundError(survey_id, f"No stored survey '{survey_id}'")
        payload = load_survey_file(path)
        logger.info("Loaded survey %s", survey_id)
        return payload

    def save(self, survey_id: str, payload: Dict[str, Any]) -> None:
        path = self._path(survey_id)
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(dump_survey(payload), encoding="utf-8")
        tmp.replace(path)
        logger.info("Saved survey %s to %s", survey_id, path)

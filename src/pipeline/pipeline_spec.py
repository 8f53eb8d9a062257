"""YAML pipeline files.

A pipeline file describes one pipeline run declaratively so the CLI and
SDK can run the same definition. Relative paths in the file resolve
against the file's own directory.

Example::

    version: 1
    name: orders
    stages: [ingest, infer, map, export]
    ingest:
      source: ./data
      dedup: content
    infer:
      min_frequency: 0.5
    map:
      target_schema: ./contract.schema.json
      min_similarity: 0.6
    export:
      format: json-schema
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

from core.errors import OdmConfigError, OdmDependencyError
from core.s3_uri import is_s3_uri
from pipeline.options import PipelineOptions, StageName, parse_stage_names

_SECTION_KEYS: dict[str, dict[str, str]] = {
    "ingest": {
        "source": "source",
        "pattern": "pattern",
        "partition_key": "partition_key",
        "batch_size": "batch_size",
        "dedup": "dedup",
    },
    "infer": {
        "sample_size": "sample_size",
        "min_frequency": "min_frequency",
        "max_depth": "max_depth",
        "detect_formats": "detect_formats",
        "max_examples": "max_examples",
    },
    "refine": {"doc_context": "doc_context_path", "temperature": "temperature"},
    "map": {
        "target_schema": "target_schema",
        "fuzzy": "fuzzy",
        "min_similarity": "min_similarity",
        "case_insensitive": "case_insensitive",
        "transform": "transform_kind",
    },
    "export": {"format": "output_format", "output": "output"},
}
_PATH_FIELDS = frozenset({"source", "target_schema", "doc_context_path", "output"})
_ROOT_KEYS = frozenset({"version", "name", "stages"}) | frozenset(_SECTION_KEYS)
_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "batch_size": (int,),
    "sample_size": (int,),
    "max_depth": (int,),
    "max_examples": (int,),
    "min_frequency": (int, float),
    "min_similarity": (int, float),
    "temperature": (int, float),
    "detect_formats": (bool,),
    "fuzzy": (bool,),
    "case_insensitive": (bool,),
}


@dataclass(frozen=True)
class PipelineSpec:
    """Validated pipeline file."""

    options: PipelineOptions
    stages: tuple[StageName, ...]


def load_pipeline_spec(spec_path: str) -> PipelineSpec:
    """Load and validate a YAML pipeline file.

    Args:
        spec_path: Path to the YAML file.

    Returns:
        Pipeline options and requested stages.

    Raises:
        OdmConfigError: If the file is missing, unparsable, or invalid.
    """
    spec_file = Path(spec_path).expanduser().resolve()
    root = _expect_mapping(_load_yaml(spec_file), "pipeline file root")
    unknown = sorted(set(root) - _ROOT_KEYS)
    if unknown:
        raise OdmConfigError(
            f"Unknown key(s) in pipeline file {spec_file}: {', '.join(unknown)}. "
            f"Allowed keys: {', '.join(sorted(_ROOT_KEYS))}."
        )
    if root.get("version") != 1:
        raise OdmConfigError(
            f"Unsupported pipeline file version {root.get('version')!r}. Set version: 1."
        )
    values: dict[str, Any] = {}
    name = root.get("name")
    if name is not None:
        if not isinstance(name, str) or not name.strip():
            raise OdmConfigError("Pipeline file field 'name' must be a non-empty string.")
        values["name"] = name.strip()
    for section, keys in _SECTION_KEYS.items():
        if root.get(section) is None:
            continue
        values.update(_parse_section(section, root[section], keys, spec_file.parent))
    stages = parse_stage_names(_parse_stages(root.get("stages")))
    return PipelineSpec(options=PipelineOptions(**values), stages=stages)


def _load_yaml(spec_file: Path) -> object:
    try:
        import yaml
    except ImportError as error:
        raise OdmDependencyError(
            "YAML pipeline files require PyYAML. Install with 'pip install pyyaml'."
        ) from error
    if not spec_file.exists():
        raise OdmConfigError(
            f"Pipeline file does not exist at {spec_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(spec_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise OdmConfigError(
            f"Failed to read pipeline file at {spec_file}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise OdmConfigError(
            f"Failed to parse YAML pipeline file at {spec_file}: {error}. Fix the YAML syntax."
        ) from error
    if payload is None:
        raise OdmConfigError(f"Pipeline file at {spec_file} is empty. Define at least 'version'.")
    return payload


def _parse_section(
    section: str, raw_section: object, keys: Mapping[str, str], base_dir: Path
) -> dict[str, Any]:
    section_mapping = _expect_mapping(raw_section, f"'{section}' section")
    unknown = sorted(set(section_mapping) - set(keys))
    if unknown:
        raise OdmConfigError(
            f"Unknown key(s) in '{section}' section: {', '.join(unknown)}. "
            f"Allowed keys: {', '.join(sorted(keys))}."
        )
    values: dict[str, Any] = {}
    for key, raw_value in section_mapping.items():
        if raw_value is None:
            continue
        field_name = keys[key]
        values[field_name] = _parse_value(section, key, field_name, raw_value, base_dir)
    return values


def _parse_value(section: str, key: str, field_name: str, value: object, base_dir: Path) -> Any:
    expected = _FIELD_TYPES.get(field_name, (str,))
    if isinstance(value, bool) and bool not in expected:
        raise OdmConfigError(f"Pipeline field '{section}.{key}' must not be a boolean.")
    if not isinstance(value, expected):
        names = " or ".join(kind.__name__ for kind in expected)
        raise OdmConfigError(
            f"Pipeline field '{section}.{key}' must be {names}, got {type(value).__name__}."
        )
    if field_name in ("min_frequency", "min_similarity", "temperature"):
        return float(cast(float, value))
    if field_name in _PATH_FIELDS:
        return _resolve_path(str(value), base_dir)
    return value


def _parse_stages(raw_stages: object) -> list[str] | None:
    if raw_stages is None:
        return None
    if not isinstance(raw_stages, list) or not all(isinstance(item, str) for item in raw_stages):
        raise OdmConfigError("Pipeline field 'stages' must be a list of stage names.")
    return list(raw_stages)


def _resolve_path(raw_path: str, base_dir: Path) -> str:
    if is_s3_uri(raw_path):
        return raw_path
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise OdmConfigError(
            f"Invalid {context}: expected a mapping, got {type(value).__name__}."
        )
    for key in value:
        if not isinstance(key, str):
            raise OdmConfigError(
                f"Invalid {context}: expected string keys, got {type(key).__name__}."
            )
    return cast(Mapping[str, object], value)

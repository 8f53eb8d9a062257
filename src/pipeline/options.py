"""Pipeline run options and configuration fingerprinting.

The fingerprint covers every option that changes stage output, so a
resumed run can detect that its configuration drifted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
import hashlib
import json
from typing import Literal

from core.constants import (
    DEFAULT_DEDUP_STRATEGY,
    DEFAULT_INGEST_BATCH_SIZE,
    DEFAULT_LLM_TEMPERATURE,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_EXAMPLES,
    DEFAULT_MIN_FREQUENCY,
    DEFAULT_MIN_SIMILARITY,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_PARTITION_KEY,
    DEFAULT_PIPELINE_NAME,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SOURCE_PATTERN,
    DEFAULT_TRANSFORM_KIND,
    HASH_ALGORITHM,
)
from core.errors import OdmValidationError
from core.types import (
    SUPPORTED_OUTPUT_FORMATS,
    SUPPORTED_TRANSFORM_KINDS,
    DedupStrategy,
    InferenceOptions,
    IngestOptions,
    OutputFormat,
    TransformKind,
)
from inference.engine import validate_inference_options
from ingest.deduplication import parse_dedup_strategy
from mapping.types import MappingOptions

StageName = Literal["ingest", "infer", "refine", "map", "export"]
STAGE_NAMES: tuple[StageName, ...] = ("ingest", "infer", "refine", "map", "export")


@dataclass(frozen=True)
class PipelineOptions:
    """Options for one pipeline run.

    Attributes:
        name: Pipeline name; checkpoints and artifacts are keyed by it.
        source: Ingest source, a local path or ``s3://`` prefix.
        pattern: Glob pattern applied under the source.
        partition_key: Partition label for staged and inferred records.
        batch_size: Files per staging batch.
        dedup: File-level dedup strategy.
        sample_size: Records sampled for inference; ``0`` samples all.
        min_frequency: Presence ratio at which a field becomes required.
        max_depth: Deepest inferred path.
        detect_formats: Whether string formats are detected.
        max_examples: Example values kept per field.
        target_schema: Target schema file for the map stage.
        fuzzy: Whether fuzzy name matching runs.
        min_similarity: Lowest similarity accepted for fuzzy matches.
        case_insensitive: Whether exact matching ignores case.
        doc_context_path: Optional documentation file given to refinement.
        temperature: Refinement sampling temperature.
        transform_kind: Generated script kind.
        output_format: Schema export format.
        output: Export destination directory or ``s3://`` prefix.
    """

    name: str = DEFAULT_PIPELINE_NAME
    source: str | None = None
    pattern: str = DEFAULT_SOURCE_PATTERN
    partition_key: str = DEFAULT_PARTITION_KEY
    batch_size: int = DEFAULT_INGEST_BATCH_SIZE
    dedup: DedupStrategy = DEFAULT_DEDUP_STRATEGY
    sample_size: int = DEFAULT_SAMPLE_SIZE
    min_frequency: float = DEFAULT_MIN_FREQUENCY
    max_depth: int = DEFAULT_MAX_DEPTH
    detect_formats: bool = True
    max_examples: int = DEFAULT_MAX_EXAMPLES
    target_schema: str | None = None
    fuzzy: bool = True
    min_similarity: float = DEFAULT_MIN_SIMILARITY
    case_insensitive: bool = False
    doc_context_path: str | None = None
    temperature: float = DEFAULT_LLM_TEMPERATURE
    transform_kind: TransformKind = DEFAULT_TRANSFORM_KIND
    output_format: OutputFormat = DEFAULT_OUTPUT_FORMAT
    output: str | None = None

    def ingest_options(self) -> IngestOptions:
        return IngestOptions(
            source=self.source or "",
            pattern=self.pattern,
            partition_key=self.partition_key,
            batch_size=self.batch_size,
            dedup=self.dedup,
        )

    def inference_options(self) -> InferenceOptions:
        return InferenceOptions(
            sample_size=self.sample_size,
            min_frequency=self.min_frequency,
            max_depth=self.max_depth,
            detect_formats=self.detect_formats,
            max_examples=self.max_examples,
        )

    def mapping_options(self) -> MappingOptions:
        return MappingOptions(
            fuzzy=self.fuzzy,
            min_similarity=self.min_similarity,
            case_insensitive=self.case_insensitive,
        )


def config_fingerprint(options: PipelineOptions) -> str:
    """Return a stable hash of the options that shape stage output."""
    canonical = json.dumps(asdict(options), sort_keys=True, separators=(",", ":"))
    hasher = hashlib.new(HASH_ALGORITHM)
    hasher.update(canonical.encode("utf-8"))
    return hasher.hexdigest()


def parse_stage_names(raw_stages: list[str] | tuple[str, ...] | None) -> tuple[StageName, ...]:
    """Normalize requested stage names into pipeline order.

    Args:
        raw_stages: Requested names; ``None`` or empty requests every stage.

    Raises:
        OdmValidationError: If a name is unknown.
    """
    if not raw_stages:
        return STAGE_NAMES
    requested = {stage.strip().lower() for stage in raw_stages}
    unknown = sorted(requested - set(STAGE_NAMES))
    if unknown:
        raise OdmValidationError(
            f"Unknown stage(s): {', '.join(unknown)}. Use any of: {', '.join(STAGE_NAMES)}."
        )
    return tuple(stage for stage in STAGE_NAMES if stage in requested)


def validate_pipeline_options(options: PipelineOptions, stages: tuple[StageName, ...]) -> None:
    """Reject invalid options before any stage touches storage or the network.

    Raises:
        OdmValidationError: If an option is out of range for the requested stages.
    """
    if not options.name or "/" in options.name or options.name.startswith("."):
        raise OdmValidationError(
            f"Invalid pipeline name '{options.name}'. Use a plain name without slashes."
        )
    if "ingest" in stages:
        if not options.source:
            raise OdmValidationError(
                "The ingest stage needs a source. Provide a file, directory, or s3:// URI."
            )
        if options.batch_size < 1:
            raise OdmValidationError(
                f"Invalid batch size {options.batch_size}: expected at least 1."
            )
        parse_dedup_strategy(options.dedup)
    if "infer" in stages:
        validate_inference_options(options.inference_options())
    if not 0.0 <= options.min_similarity <= 1.0:
        raise OdmValidationError(
            f"Invalid min similarity {options.min_similarity}: expected a value in [0, 1]."
        )
    if not 0.0 <= options.temperature <= 2.0:
        raise OdmValidationError(
            f"Invalid temperature {options.temperature}: expected a value in [0, 2]."
        )
    if options.transform_kind not in SUPPORTED_TRANSFORM_KINDS:
        raise OdmValidationError(
            f"Unsupported transform kind '{options.transform_kind}'. "
            f"Use one of: {', '.join(SUPPORTED_TRANSFORM_KINDS)}."
        )
    if options.output_format not in SUPPORTED_OUTPUT_FORMATS:
        raise OdmValidationError(
            f"Unsupported output format '{options.output_format}'. "
            f"Use one of: {', '.join(SUPPORTED_OUTPUT_FORMATS)}."
        )

"""Record types flowing through the catalog pipeline.

Lifecycle: NodeReference -> RawRecord -> TransformationResult -> CanonicalRecord.
Every record is frozen once produced; stages derive new records with
``model_copy(update=...)`` instead of mutating their inputs.

Serialized forms use camelCase keys (``displayName``, ``triggerFlag``...) so the
persisted catalog matches the shape consumed by the query layer.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Base model for pipeline records.

    Records are immutable and accept both snake_case and camelCase input.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class NodeType(str, Enum):
    """Node type classification detected from a documentation page."""

    TRIGGER = "trigger"
    REGULAR = "regular"
    SUB = "sub"
    CLUSTER = "cluster"


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class NodeReference(RecordModel):
    """A discovered pointer to one node documentation page."""

    name: str
    display_name: str
    url: str
    category: str
    subcategory: Optional[str] = None
    priority: int = Field(default=5, ge=1, le=5)

    @property
    def key(self) -> Tuple[str, str]:
        """Identity key, unique within one discovery run."""
        return (self.name, self.url)


# ---------------------------------------------------------------------------
# Raw extraction
# ---------------------------------------------------------------------------


class RawParameter(RecordModel):
    name: str
    display_name: str
    type: str = "string"
    required: bool = False
    default: Optional[str] = None
    description: str = ""
    options: Optional[List[str]] = None


class RawOperation(RecordModel):
    name: str
    display_name: str
    description: str = ""
    parameters: List[RawParameter] = Field(default_factory=list)


class RawCredential(RecordModel):
    name: str
    display_name: str
    type: str = "api"
    required: bool = False
    description: Optional[str] = None


class RawExample(RecordModel):
    title: str
    description: str = ""
    workflow_data: Optional[Dict[str, Any]] = None
    code_snippet: Optional[str] = None


class RawRecord(RecordModel):
    """Best-effort structured extraction from one fetched page."""

    url: str
    name: str
    display_name: str
    description: str
    category: str
    subcategory: Optional[str] = None
    node_type: NodeType = NodeType.REGULAR
    raw_content: str = ""
    version: Optional[str] = None

    is_trigger: bool = False
    has_webhook: bool = False
    has_polling: bool = False
    is_core: bool = False

    operations: List[RawOperation] = Field(default_factory=list)
    credentials: List[RawCredential] = Field(default_factory=list)
    examples: List[RawExample] = Field(default_factory=list)

    scraped_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    # Only populated when HTML retention is enabled for debugging
    html_content: Optional[str] = None


# ---------------------------------------------------------------------------
# Canonical schema
# ---------------------------------------------------------------------------


class PropertyOption(RecordModel):
    name: str
    value: Any
    description: Optional[str] = None


class NodeProperty(RecordModel):
    name: str = ""
    display_name: str = ""
    type: str = ""
    required: Optional[bool] = False
    default: Optional[Any] = None
    description: str = ""
    options: Optional[List[PropertyOption]] = None


class NodeInput(RecordModel):
    type: str = ""
    display_name: str = ""
    required: bool = False
    max_connections: Optional[int] = None


class NodeOutput(RecordModel):
    type: str = ""
    display_name: str = ""
    description: Optional[str] = None


class NodeExample(RecordModel):
    name: str
    description: str = ""
    workflow: Dict[str, Any] = Field(default_factory=dict)


class CanonicalRecord(RecordModel):
    """The normalized, schema-conformant node record stored in the catalog.

    ``inputs`` and ``outputs`` are optional so that incomplete records coming
    from elsewhere can still be validated; the transformer always sets them.
    """

    name: str
    display_name: str
    description: str
    category: str
    subcategory: Optional[str] = None
    properties: List[NodeProperty] = Field(default_factory=list)
    inputs: Optional[List[NodeInput]] = Field(default_factory=list)
    outputs: Optional[List[NodeOutput]] = Field(default_factory=list)
    credentials: Optional[List[str]] = None
    trigger_flag: bool = False
    regular_flag: bool = True
    webhook_support: bool = False
    polling: bool = False
    codeable: bool = False
    examples: List[NodeExample] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Outcomes and statistics
# ---------------------------------------------------------------------------


class ValidationResult(RecordModel):
    valid: bool
    score: int = Field(ge=0, le=100)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class TransformationResult(RecordModel):
    """Outcome of transforming one raw record; ``record`` is set iff ``success``."""

    success: bool
    record: Optional[CanonicalRecord] = None
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    score: int = 0
    raw_record: RawRecord


class ScrapingError(RecordModel):
    """Terminal failure record for one reference."""

    url: str
    node_name: str
    error: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    retry_count: int = 0


class BatchResult(RecordModel):
    """Aggregate outcome of fetching a list of references in batches."""

    records: List[RawRecord] = Field(default_factory=list)
    errors: List[ScrapingError] = Field(default_factory=list)
    processed: int = 0
    successful: int = 0
    failed: int = 0
    batches: int = 0
    duration_ms: float = 0.0


class ScraperStats(RecordModel):
    total_nodes: int = 0
    successful_scrapes: int = 0
    failed_scrapes: int = 0
    average_response_time_ms: float = 0.0
    error_rate: float = 0.0
    category_counts: Dict[str, int] = Field(default_factory=dict)
    processing_time_ms: float = 0.0

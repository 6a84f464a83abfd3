"""Pipeline record models."""

from .records import (
    BatchResult,
    CanonicalRecord,
    NodeExample,
    NodeInput,
    NodeOutput,
    NodeProperty,
    NodeReference,
    NodeType,
    PropertyOption,
    RawCredential,
    RawExample,
    RawOperation,
    RawParameter,
    RawRecord,
    ScraperStats,
    ScrapingError,
    TransformationResult,
    ValidationResult,
)

__all__ = [
    "BatchResult",
    "CanonicalRecord",
    "NodeExample",
    "NodeInput",
    "NodeOutput",
    "NodeProperty",
    "NodeReference",
    "NodeType",
    "PropertyOption",
    "RawCredential",
    "RawExample",
    "RawOperation",
    "RawParameter",
    "RawRecord",
    "ScraperStats",
    "ScrapingError",
    "TransformationResult",
    "ValidationResult",
]

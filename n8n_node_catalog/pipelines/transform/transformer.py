"""Transformation of raw node records into the canonical catalog schema."""

import logging
import re
from collections import Counter
from typing import Any, Dict, List, Optional

from ...core.config import settings
from ...models import (
    CanonicalRecord,
    NodeExample,
    NodeInput,
    NodeOutput,
    NodeProperty,
    PropertyOption,
    RawRecord,
    TransformationResult,
)
from ..constants import (
    CATEGORY_MAP,
    CODE_KEYWORDS,
    ERROR_KEYWORDS,
    FALLBACK_CATEGORY,
    GENERIC_DESCRIPTION,
    NO_DESCRIPTION,
    PARAMETER_TYPE_MAP,
)
from .validator import NodeValidator

logger = logging.getLogger(__name__)


class DataTransformer:
    """Maps raw records to canonical records.

    ``transform`` is deterministic: the same raw record always yields the same
    canonical record. The quality gate is the same ``NodeValidator`` used for
    standalone validation, extended with warnings about the raw extraction.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        validator: Optional[NodeValidator] = None,
    ):
        self.config = {
            "namespace": settings.namespace,
            "max_description_length": settings.max_description_length,
        }
        if config:
            self.config.update(config)

        self.validator = validator or NodeValidator({"namespace": self.config["namespace"]})

    def transform(self, raw: RawRecord) -> TransformationResult:
        """Transform one raw record; failures are returned, never raised."""
        try:
            record = self.to_canonical(raw)
            validation = self.validator.validate_node(record)

            warnings = list(validation.warnings)
            penalty = 0
            if not raw.operations:
                warnings.append("No operations extracted")
                penalty += 10
            if not raw.examples:
                warnings.append("No examples found")
                penalty += 5

            success = not validation.errors
            return TransformationResult(
                success=success,
                record=record if success else None,
                errors=list(validation.errors),
                warnings=warnings,
                score=max(0, validation.score - penalty),
                raw_record=raw,
            )

        except Exception as e:
            logger.error(f"Failed to transform {raw.name}: {e}")
            return TransformationResult(
                success=False,
                errors=[f"Transformation failed: {e}"],
                raw_record=raw,
            )

    def transform_batch(self, raws: List[RawRecord]) -> List[TransformationResult]:
        results = [self.transform(raw) for raw in raws]

        successful = sum(1 for r in results if r.success)
        logger.info(f"Transformed {successful}/{len(raws)} records successfully")
        return results

    def to_canonical(self, raw: RawRecord) -> CanonicalRecord:
        return CanonicalRecord(
            name=self.normalize_name(raw.name),
            display_name=raw.display_name or raw.name,
            description=self.process_description(raw.description),
            category=self.map_category(raw.category),
            subcategory=raw.subcategory,
            properties=self.build_properties(raw),
            inputs=self.build_inputs(raw),
            outputs=self.build_outputs(raw),
            credentials=[c.name for c in raw.credentials] or None,
            trigger_flag=raw.is_trigger,
            regular_flag=not raw.is_trigger,
            webhook_support=raw.has_webhook,
            polling=raw.has_polling,
            codeable=self.is_codeable(raw),
            examples=self.build_examples(raw),
        )

    def normalize_name(self, name: str) -> str:
        """``"Slack"`` -> ``"n8n-nodes-base.slack"``; an existing namespace is not repeated."""
        namespace = self.config["namespace"]
        base = name.lower()
        if base.startswith(namespace):
            base = base[len(namespace) :].lstrip(".")
        base = re.sub(r"[^a-z0-9\-]", "", base)
        return f"{namespace}.{base}"

    def process_description(self, description: Optional[str]) -> str:
        if not description or description == NO_DESCRIPTION:
            return GENERIC_DESCRIPTION

        description = re.sub(r"\s+", " ", description)
        description = re.sub(r"[^\w\s\-.,!?]", "", description).strip()
        return description[: self.config["max_description_length"]] or GENERIC_DESCRIPTION

    def map_category(self, category: str) -> str:
        return CATEGORY_MAP.get(category, FALLBACK_CATEGORY)

    def map_parameter_type(self, raw_type: str) -> str:
        return PARAMETER_TYPE_MAP.get((raw_type or "").lower(), "string")

    def build_properties(self, raw: RawRecord) -> List[NodeProperty]:
        properties: List[NodeProperty] = []

        if not raw.is_trigger:
            if raw.operations:
                options = [
                    PropertyOption(name=op.display_name, value=op.name, description=op.description)
                    for op in raw.operations
                ]
            else:
                options = [PropertyOption(name="Execute", value="execute")]

            properties.append(
                NodeProperty(
                    name="operation",
                    display_name="Operation",
                    type="options",
                    required=True,
                    default=raw.operations[0].name if raw.operations else "execute",
                    description="The operation to perform",
                    options=options,
                )
            )

        # Parameters shared by several operations are listed once
        seen = {p.name for p in properties}
        for operation in raw.operations:
            for param in operation.parameters:
                if param.name in seen:
                    continue
                seen.add(param.name)
                properties.append(
                    NodeProperty(
                        name=param.name,
                        display_name=param.display_name,
                        type=self.map_parameter_type(param.type),
                        required=param.required,
                        default=param.default,
                        description=param.description,
                        options=[PropertyOption(name=o, value=o) for o in param.options]
                        if param.options
                        else None,
                    )
                )

        if not properties:
            properties.append(
                NodeProperty(
                    name="operation",
                    display_name="Operation",
                    type="string",
                    required=True,
                    default="execute",
                    description="Operation to perform",
                )
            )

        return properties

    def build_inputs(self, raw: RawRecord) -> List[NodeInput]:
        if raw.is_trigger:
            return []
        return [NodeInput(type="main", display_name="Input", required=False)]

    def build_outputs(self, raw: RawRecord) -> List[NodeOutput]:
        outputs = [NodeOutput(type="main", display_name="Output", description="Main data output")]
        if self.has_error_handling(raw):
            outputs.append(NodeOutput(type="main", display_name="Error", description="Error output"))
        return outputs

    def has_error_handling(self, raw: RawRecord) -> bool:
        texts = [raw.raw_content]
        for operation in raw.operations:
            texts.append(operation.description)
            texts.extend(p.name for p in operation.parameters)
            texts.extend(p.description for p in operation.parameters)

        return any(keyword in text.lower() for text in texts for keyword in ERROR_KEYWORDS)

    def is_codeable(self, raw: RawRecord) -> bool:
        content = raw.raw_content.lower()
        name = raw.name.lower()
        return any(keyword in content or keyword in name for keyword in CODE_KEYWORDS)

    def build_examples(self, raw: RawRecord) -> List[NodeExample]:
        return [
            NodeExample(
                name=example.title,
                description=example.description,
                workflow=example.workflow_data or self.basic_workflow(raw),
            )
            for example in raw.examples
        ]

    def basic_workflow(self, raw: RawRecord) -> Dict[str, Any]:
        """Minimal manual-trigger -> node workflow for an example without workflow data."""
        display_name = raw.display_name or raw.name
        parameters = {}
        if raw.operations:
            parameters = {p.name: p.default or "" for p in raw.operations[0].parameters}

        return {
            "nodes": [
                {
                    "name": "Start",
                    "type": f"{self.config['namespace']}.manualTrigger",
                    "position": [240, 300],
                    "parameters": {},
                },
                {
                    "name": display_name,
                    "type": self.normalize_name(raw.name),
                    "position": [460, 300],
                    "parameters": parameters,
                },
            ],
            "connections": {
                "Start": {"main": [[{"node": display_name, "type": "main", "index": 0}]]}
            },
        }

    def get_stats(self, results: List[TransformationResult]) -> Dict[str, Any]:
        """Summarize a batch of transformation results."""
        total = len(results)
        successful = sum(1 for r in results if r.success)
        errors = Counter(e for r in results for e in r.errors)
        warnings = Counter(w for r in results for w in r.warnings)

        return {
            "total": total,
            "successful": successful,
            "failed": total - successful,
            "success_rate": successful / total if total else 0.0,
            "average_quality_score": round(sum(r.score for r in results) / total) if total else 0,
            "top_errors": [
                {"error": error, "count": count} for error, count in errors.most_common(5)
            ],
            "top_warnings": [
                {"warning": warning, "count": count} for warning, count in warnings.most_common(5)
            ],
        }

"""Quality scoring for raw and canonical node records.

Every rule group appends error or warning messages and returns a penalty;
the score is 100 minus the sum of penalties, floored at 0. A record is valid
when no rule produced an error. Validation never mutates its input.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ...core.config import settings
from ...models import CanonicalRecord, RawRecord, ValidationResult
from ..constants import GENERIC_DESCRIPTION, QUALITY_THRESHOLDS, VALIDATION_RULES

logger = logging.getLogger(__name__)


@dataclass
class RuleOutcome:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    penalty: int = 0

    def error(self, message: str, penalty: int) -> None:
        self.errors.append(message)
        self.penalty += penalty

    def warning(self, message: str, penalty: int) -> None:
        self.warnings.append(message)
        self.penalty += penalty


def _result(outcomes: Sequence[RuleOutcome]) -> ValidationResult:
    errors = [e for outcome in outcomes for e in outcome.errors]
    warnings = [w for outcome in outcomes for w in outcome.warnings]
    penalty = sum(outcome.penalty for outcome in outcomes)

    return ValidationResult(
        valid=not errors,
        score=max(0, 100 - penalty),
        errors=errors,
        warnings=warnings,
    )


def _top(counter: Counter, key: str, limit: int = 5) -> List[Dict[str, Any]]:
    return [{key: message, "count": count} for message, count in counter.most_common(limit)]


class NodeValidator:
    """Scores node records for completeness and consistency."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = {
            "namespace": settings.namespace,
            "min_description_length": settings.min_description_length,
            "max_description_length": QUALITY_THRESHOLDS["max_description_length"],
            "min_parameter_count": QUALITY_THRESHOLDS["min_parameter_count"],
            "min_raw_content_length": QUALITY_THRESHOLDS["min_raw_content_length"],
            "property_drift_threshold": settings.property_drift_threshold,
        }
        if config:
            self.config.update(config)

    def validate_node(self, record: CanonicalRecord) -> ValidationResult:
        """Validate a canonical record."""
        return _result(
            [
                self._check_required_fields(record),
                self._check_quality(record),
                self._check_structure(record),
                self._check_node_type(record),
            ]
        )

    def validate_batch(self, records: List[CanonicalRecord]) -> List[ValidationResult]:
        results = [self.validate_node(record) for record in records]
        logger.debug(
            f"Validated {len(records)} records, {sum(1 for r in results if r.valid)} valid"
        )
        return results

    def validate_raw_data(self, raw: RawRecord) -> ValidationResult:
        """Validate a raw record before transformation."""
        outcome = RuleOutcome()

        if not raw.name:
            outcome.error("Missing node name", 25)
        if not raw.display_name:
            outcome.error("Missing display name", 20)
        if len(raw.description or "") < self.config["min_description_length"]:
            outcome.error("Insufficient description", 15)
        if not raw.category:
            outcome.error("Missing category", 10)

        if len(raw.raw_content or "") < self.config["min_raw_content_length"]:
            outcome.warning("Limited raw content extracted", 10)
        if not raw.operations:
            outcome.warning("No operations found", 15)
        if not raw.examples:
            outcome.warning("No examples found", 5)

        return _result([outcome])

    def _check_required_fields(self, record: CanonicalRecord) -> RuleOutcome:
        outcome = RuleOutcome()

        if not record.name:
            outcome.error("Missing node name", 25)
        elif not record.name.startswith(f"{self.config['namespace']}."):
            outcome.warning("Node name should follow n8n naming convention", 5)

        if not record.display_name:
            outcome.error("Missing display name", 20)

        if not record.description:
            outcome.error("Missing description", 15)
        elif len(record.description) < self.config["min_description_length"]:
            outcome.error("Description too short", 10)

        if not record.category:
            outcome.error("Missing category", 10)
        if not record.properties:
            outcome.error("Missing properties", 15)
        if record.inputs is None:
            outcome.error("Missing inputs definition", 10)
        if record.outputs is None:
            outcome.error("Missing outputs definition", 10)

        return outcome

    def _check_quality(self, record: CanonicalRecord) -> RuleOutcome:
        outcome = RuleOutcome()

        if record.description == GENERIC_DESCRIPTION:
            outcome.warning("Using generic description", 5)
        if len(record.description or "") > self.config["max_description_length"]:
            outcome.warning("Description might be too long", 2)

        if len(record.properties) < self.config["min_parameter_count"]:
            outcome.warning("Very few properties defined", 5)

        names = [p.name for p in record.properties]
        if len(names) != len(set(names)):
            outcome.error("Duplicate property names found", 15)

        if record.trigger_flag and record.regular_flag:
            outcome.error("Node cannot be both trigger and regular", 20)
        elif not record.trigger_flag and not record.regular_flag:
            outcome.error("Node type not clearly defined: neither trigger nor regular", 5)

        return outcome

    def _check_structure(self, record: CanonicalRecord) -> RuleOutcome:
        outcome = RuleOutcome()

        for prop in record.properties:
            if not prop.name:
                outcome.error("Property missing name", 5)
            if not prop.display_name:
                outcome.error("Property missing display name", 3)
            if not prop.type:
                outcome.error("Property missing type", 5)
            if prop.required is None:
                outcome.warning("Property missing required flag", 1)

        for node_input in record.inputs or []:
            if not node_input.type:
                outcome.error("Input missing type", 3)
            if not node_input.display_name:
                outcome.error("Input missing display name", 2)

        for node_output in record.outputs or []:
            if not node_output.type:
                outcome.error("Output missing type", 3)
            if not node_output.display_name:
                outcome.error("Output missing display name", 2)

        return outcome

    def _check_node_type(self, record: CanonicalRecord) -> RuleOutcome:
        outcome = RuleOutcome()
        description = record.description or ""

        if record.trigger_flag:
            if record.inputs:
                outcome.warning("Trigger nodes typically have no inputs", 3)
            if len(description) < VALIDATION_RULES["trigger"]["min_description_length"]:
                outcome.warning("Trigger node description should be more detailed", 5)
        elif record.regular_flag:
            if not record.inputs:
                outcome.warning("Regular nodes typically have inputs", 5)
            if len(description) < VALIDATION_RULES["regular"]["min_description_length"]:
                outcome.warning("Regular node description should be more detailed", 3)

        if ("function" in record.name or "code" in record.name) and not record.codeable:
            outcome.warning("Code-related nodes should have codeable flag", 3)

        return outcome

    def get_validation_stats(self, results: List[ValidationResult]) -> Dict[str, Any]:
        """Aggregate statistics over a batch of validation results."""
        total = len(results)
        valid = sum(1 for r in results if r.valid)

        errors: Counter = Counter(e for r in results for e in r.errors)
        warnings: Counter = Counter(w for r in results for w in r.warnings)

        return {
            "total": total,
            "valid": valid,
            "invalid": total - valid,
            "validation_rate": valid / total if total else 0.0,
            "average_score": round(sum(r.score for r in results) / total) if total else 0,
            "score_distribution": {
                "excellent": sum(1 for r in results if r.score >= 90),
                "good": sum(1 for r in results if 70 <= r.score < 90),
                "fair": sum(1 for r in results if 50 <= r.score < 70),
                "poor": sum(1 for r in results if r.score < 50),
            },
            "top_errors": _top(errors, "error"),
            "top_warnings": _top(warnings, "warning"),
        }

    def validate_consistency(
        self, new_records: List[CanonicalRecord], existing_records: List[CanonicalRecord]
    ) -> ValidationResult:
        """Compare a batch of new records with an existing catalog.

        Only warnings are produced; the result never blocks a merge.
        """
        outcome = RuleOutcome()

        existing_names = {r.name for r in existing_records}
        duplicates = [r.name for r in new_records if r.name in existing_names]
        if duplicates:
            outcome.warning(f"Found {len(duplicates)} duplicate node names", 2 * len(duplicates))

        if existing_records:
            existing_categories = {r.category for r in existing_records}
            new_categories = sorted({r.category for r in new_records} - existing_categories)
            if new_categories:
                outcome.warning(
                    f"Found {len(new_categories)} new categories: {', '.join(new_categories)}",
                    3 * len(new_categories),
                )

        if new_records and existing_records:
            average_new = sum(len(r.properties) for r in new_records) / len(new_records)
            average_existing = sum(len(r.properties) for r in existing_records) / len(
                existing_records
            )
            if abs(average_new - average_existing) > self.config["property_drift_threshold"]:
                outcome.warning(
                    "Significant difference in average property count compared to existing nodes",
                    5,
                )

        return _result([outcome])

    def generate_report(
        self, results: List[ValidationResult], records: List[CanonicalRecord]
    ) -> str:
        """Render a Markdown validation report."""
        stats = self.get_validation_stats(results)
        distribution = stats["score_distribution"]

        lines = [
            "# Node Validation Report",
            "",
            f"Generated: {datetime.now(timezone.utc).isoformat()}",
            "",
            "## Summary",
            f"- Total nodes validated: {stats['total']}",
            f"- Valid nodes: {stats['valid']} ({round(stats['validation_rate'] * 100)}%)",
            f"- Invalid nodes: {stats['invalid']}",
            f"- Average quality score: {stats['average_score']}/100",
            "",
            "## Score Distribution",
            f"- Excellent (90-100): {distribution['excellent']}",
            f"- Good (70-89): {distribution['good']}",
            f"- Fair (50-69): {distribution['fair']}",
            f"- Poor (<50): {distribution['poor']}",
            "",
        ]

        if stats["top_errors"]:
            lines.append("## Top Errors")
            lines.extend(f"- {e['error']}: {e['count']} occurrences" for e in stats["top_errors"])
            lines.append("")

        if stats["top_warnings"]:
            lines.append("## Top Warnings")
            lines.extend(
                f"- {w['warning']}: {w['count']} occurrences" for w in stats["top_warnings"]
            )
            lines.append("")

        invalid = [(r, n) for r, n in zip(results, records) if not r.valid][:5]
        if invalid:
            lines.append("## Sample Invalid Nodes")
            for index, (result, record) in enumerate(invalid, 1):
                lines.append(f"### {index}. {record.display_name or record.name}")
                lines.append(f"Score: {result.score}/100")
                lines.extend(f"- Error: {error}" for error in result.errors)
                lines.append("")

        return "\n".join(lines)

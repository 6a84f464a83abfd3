"""Information-preserving merge of canonical records into an existing catalog."""

import logging
from typing import Any, Dict, List, Optional

from ...models import CanonicalRecord, ValidationResult
from .validator import NodeValidator

logger = logging.getLogger(__name__)


class CatalogMerger:
    """Combines new canonical records with existing ones by name.

    A collision never loses information already in the catalog: descriptions
    keep the longer text, properties and examples are unioned by name with the
    existing entry winning, support flags are ORed and credentials are only
    replaced by a non-empty list.
    """

    def __init__(self, validator: Optional[NodeValidator] = None):
        self.validator = validator or NodeValidator()

    def merge(
        self, new_records: List[CanonicalRecord], existing_records: List[CanonicalRecord]
    ) -> List[CanonicalRecord]:
        """Merge new records into the existing ones and return the combined list.

        Existing records keep their position; unseen names are appended in the
        order they arrive.
        """
        merged: Dict[str, CanonicalRecord] = {r.name: r for r in existing_records}
        added = updated = 0

        for record in new_records:
            existing = merged.get(record.name)
            if existing is None:
                merged[record.name] = record
                added += 1
            else:
                merged[record.name] = self.merge_records(existing, record)
                updated += 1

        logger.info(f"Merged {len(new_records)} records: {added} added, {updated} updated")
        return list(merged.values())

    def merge_records(self, existing: CanonicalRecord, new: CanonicalRecord) -> CanonicalRecord:
        """Merge two records sharing the same name."""
        description = (
            new.description
            if len(new.description or "") > len(existing.description or "")
            else existing.description
        )

        property_names = {p.name for p in existing.properties}
        properties = list(existing.properties) + [
            p for p in new.properties if p.name not in property_names
        ]

        example_names = {e.name for e in existing.examples}
        examples = list(existing.examples) + [
            e for e in new.examples if e.name not in example_names
        ]

        return existing.model_copy(
            update={
                "description": description,
                "properties": properties,
                "webhook_support": existing.webhook_support or new.webhook_support,
                "polling": existing.polling or new.polling,
                "credentials": new.credentials if new.credentials else existing.credentials,
                "examples": examples,
            }
        )

    def check_consistency(
        self, new_records: List[CanonicalRecord], existing_records: List[CanonicalRecord]
    ) -> ValidationResult:
        """Consistency warnings for a merge; never a precondition."""
        result = self.validator.validate_consistency(new_records, existing_records)
        for warning in result.warnings:
            logger.warning(f"Catalog consistency: {warning}")
        return result

    def summarize(
        self, new_records: List[CanonicalRecord], existing_records: List[CanonicalRecord]
    ) -> Dict[str, Any]:
        existing_names = {r.name for r in existing_records}
        collisions = sorted({r.name for r in new_records if r.name in existing_names})
        return {
            "new": len({r.name for r in new_records} - existing_names),
            "collisions": len(collisions),
            "collision_names": collisions,
        }

"""
Validation rules gating a bulk evaluation upload.

Validity and completeness are separate: a record with no data at all is
valid but incomplete, and is simply not persisted. Range violations are
collected across the whole batch and returned, never raised.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import BaseModel

from .models import BulkValidationResult, ScoreRange

logger = logging.getLogger(__name__)

# (attribute name, camelCase alias, label used in messages)
SCORED_SECTIONS: tuple[tuple[str, str, str], ...] = (
    ("self_evaluation", "selfEvaluation", "Autoavaliação"),
    ("leader_evaluation", "leaderEvaluation", "Avaliação do Líder"),
    ("toolkit", "toolkit", "Toolkit"),
)

BULK_SCORE_RANGE = ScoreRange(1, 5)


def _as_mapping(record: Any) -> Mapping[str, Any]:
    if isinstance(record, BaseModel):
        return record.model_dump(exclude_none=False)
    if isinstance(record, Mapping):
        return record
    raise TypeError(f"Unsupported batch record type: {type(record).__name__}")


def _section(record: Mapping[str, Any], name: str, alias: str) -> Mapping[str, Any] | None:
    value = record.get(name)
    if value is None and alias != name:
        value = record.get(alias)
    return value if isinstance(value, Mapping) else None


def _leaves(section: Mapping[str, Any], prefix: str = "") -> Iterator[tuple[str, Any]]:
    """Yield (dotted key, value) for every present leaf of a section."""
    for key, value in section.items():
        dotted = f"{prefix}{key}"
        if value is None:
            continue
        if isinstance(value, Mapping):
            yield from _leaves(value, prefix=f"{dotted}.")
        else:
            yield dotted, value


def _numeric(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def numeric_section(section: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of a validated section with every leaf converted to float."""
    converted: dict[str, Any] = {}
    for key, value in section.items():
        if isinstance(value, Mapping):
            converted[key] = numeric_section(value)
        else:
            converted[key] = None if value is None else _numeric(value)
    return converted


def flat_scores(section: Mapping[str, Any]) -> dict[str, float]:
    """
    Every numeric leaf of a section keyed by its dotted path.

    Example:
        >>> flat_scores({"Foco": 3, "Entrega": {"Prazo": "4"}})
        {'Foco': 3.0, 'Entrega.Prazo': 4.0}
    """
    return {
        key: value
        for key, value in _leaves(numeric_section(section))
        if isinstance(value, float)
    }


def _has_text(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, Mapping):
        return any(_has_text(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(_has_text(v) for v in value)
    return bool(str(value).strip())


class BulkValidator:
    """Validate batches of bulk evaluation records against a score range."""

    def __init__(self, score_range: ScoreRange = BULK_SCORE_RANGE):
        self.score_range = score_range

    def validate_section(self, section: Mapping[str, Any], label: str) -> list[str]:
        errors: list[str] = []
        for key, value in _leaves(section):
            score = _numeric(value)
            if score is None or not self.score_range.contains(score):
                errors.append(f"{label}: {key} deve estar entre {self.score_range.describe()}")
        return errors

    def validate(self, records: Iterable[Any]) -> BulkValidationResult:
        errors: list[str] = []
        count = 0
        for record in records:
            count += 1
            data = _as_mapping(record)
            for name, alias, label in SCORED_SECTIONS:
                section = _section(data, name, alias)
                if section is not None:
                    errors.extend(self.validate_section(section, label))

        if errors:
            logger.info("Bulk validation found %d error(s) in %d record(s)", len(errors), count)
        return BulkValidationResult(is_valid=not errors, errors=errors)

    @staticmethod
    def has_scores(section: Mapping[str, Any] | None) -> bool:
        if not section:
            return False
        return any(True for _ in _leaves(section))

    @staticmethod
    def has_pdi(pdi: Any) -> bool:
        return _has_text(pdi)

    def is_complete(self, record: Any) -> bool:
        data = _as_mapping(record)
        if any(self.has_scores(_section(data, n, a)) for n, a, _ in SCORED_SECTIONS):
            return True
        return self.has_pdi(data.get("pdi"))


def validate_bulk_scores(
    records: Iterable[Any], score_range: ScoreRange = BULK_SCORE_RANGE
) -> BulkValidationResult:
    """
    Validate every score of every record in a bulk upload.

    Example:
        >>> result = validate_bulk_scores([{"selfEvaluation": {"technical": 6}}])
        >>> result.is_valid, result.errors
        (False, ['Autoavaliação: technical deve estar entre 1 e 5'])
    """
    return BulkValidator(score_range).validate(records)

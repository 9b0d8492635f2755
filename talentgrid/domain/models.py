from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Category(str, Enum):
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"
    DELIVERIES = "deliveries"

    @classmethod
    def parse(cls, value: Category | str) -> Category:
        """Accept an enum member or its string value."""
        if isinstance(value, Category):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown competency category {value!r}; "
                f"expected one of {', '.join(c.value for c in cls)}"
            ) from None


class Level(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = (Level.LOW, Level.MEDIUM, Level.HIGH)


@dataclass(frozen=True, slots=True)
class CompetencyScore:
    name: str
    category: Category
    score: float | None = None  # None while unscored
    written_response: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.category, Category):
            object.__setattr__(self, "category", Category.parse(self.category))


@dataclass(frozen=True, slots=True)
class CategoryWeights:
    technical: float = 0.5
    behavioral: float = 0.3
    deliveries: float = 0.2

    def weight_for(self, category: Category) -> float:
        if category is Category.TECHNICAL:
            return self.technical
        if category is Category.BEHAVIORAL:
            return self.behavioral
        if category is Category.DELIVERIES:
            return self.deliveries
        raise ValueError(f"No weight configured for {category!r}")


@dataclass(frozen=True, slots=True)
class BandThresholds:
    low_max: float = 2.0
    medium_max: float = 3.0

    def level(self, value: float) -> Level:
        # Cut-offs are inclusive on the lower band
        if value <= self.low_max:
            return Level.LOW
        if value <= self.medium_max:
            return Level.MEDIUM
        return Level.HIGH


@dataclass(frozen=True, slots=True)
class ScoreRange:
    minimum: float
    maximum: float

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum

    def describe(self) -> str:
        return f"{_fmt(self.minimum)} e {_fmt(self.maximum)}"


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


POTENTIAL_INDICATORS: tuple[str, ...] = (
    "funcaoSubsequente",
    "aprendizadoContinuo",
    "alinhamentoCultural",
    "visaoSistemica",
)

UNCLASSIFIED_LABEL = "Não classificado"

# (performance level, potential level) -> label
NINE_BOX_LABELS: dict[tuple[Level, Level], str] = {
    (Level.LOW, Level.LOW): "Questionável",
    (Level.LOW, Level.MEDIUM): "Novo/Desenvolvimento",
    (Level.LOW, Level.HIGH): "Enigma",
    (Level.MEDIUM, Level.LOW): "Eficaz",
    (Level.MEDIUM, Level.MEDIUM): "Mantenedor",
    (Level.MEDIUM, Level.HIGH): "Forte Desempenho",
    (Level.HIGH, Level.LOW): "Especialista",
    (Level.HIGH, Level.MEDIUM): "Alto Desempenho",
    (Level.HIGH, Level.HIGH): "Estrela",
}


@dataclass(frozen=True, slots=True)
class NineBoxPlacement:
    performance_level: Level | None
    potential_level: Level | None
    label: str
    cell: int | None = None  # 1..9, bottom-left to top-right


@dataclass(slots=True)
class CategoryBreakdown:
    technical: float
    behavioral: float
    deliveries: float
    final: float

    def as_columns(self) -> dict[str, float]:
        """Column names used by the evaluation tables."""
        return {
            "technical_score": self.technical,
            "behavioral_score": self.behavioral,
            "deliveries_score": self.deliveries,
            "final_score": self.final,
        }


@dataclass(slots=True)
class BulkValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class BulkSaveResult:
    success: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

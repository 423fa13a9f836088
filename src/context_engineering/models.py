"""Record types shared by the retrieval and assembly pipeline.

Every entity kind is an explicit dataclass with required fields first and
optional fields defaulted. Records arrive either from a store payload or from
the JSON a calling assistant passes back to ``assemble``; both paths go through
``from_dict`` so malformed input is rejected with a ValidationError instead of
surfacing later as an AttributeError deep inside scoring.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from context_engineering.exceptions import ValidationError


class EntityKind(str, Enum):
    """The three retrievable entity kinds."""

    PATTERN = "pattern"
    RULE = "rule"
    RESEARCH = "research"


class ComplexityLevel(str, Enum):
    """Skill level a pattern or template targets."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class EnforcementLevel(str, Enum):
    """How strictly a project rule must be followed."""

    MANDATORY = "mandatory"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"

    @property
    def rank(self) -> int:
        """Sort rank, lower first (mandatory = 0)."""
        return _ENFORCEMENT_RANK[self]


_ENFORCEMENT_RANK = {
    EnforcementLevel.MANDATORY: 0,
    EnforcementLevel.RECOMMENDED: 1,
    EnforcementLevel.OPTIONAL: 2,
}


class ValidationStrictness(str, Enum):
    """Which checklist items the generated document includes."""

    BASIC = "basic"
    STANDARD = "standard"
    STRICT = "strict"


# =============================================================================
# Helpers
# =============================================================================


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a score into [low, high]."""
    return max(low, min(high, float(value)))


def round_score(value: float) -> float:
    """Clamp to [0, 1] and round to two decimals."""
    return round(clamp(value), 2)


def parse_enum(enum_cls: type[Enum], value: Any, field_name: str) -> Any:
    """Parse a (case-insensitive) enum value or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(
        f"Invalid {field_name}: {value!r} (expected one of: {allowed})",
        field=field_name,
    )


def _str_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"Field '{key}' must be a list of strings", field=key)
    return list(value)


def _number(data: dict[str, Any], key: str, default: float = 0.0) -> float:
    value = data.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Field '{key}' must be a number", field=key)
    return float(value)


def _text(data: dict[str, Any], *keys: str, default: str = "") -> str:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return str(value)
    return default


def _require_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string, epoch seconds or datetime as an aware UTC time."""
    if value is None:
        return datetime(1970, 1, 1, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValidationError(f"Invalid created_at: {value!r}", field="created_at")
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        if isinstance(value, str):
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            value = datetime.fromisoformat(text)
    except (ValueError, OverflowError, OSError) as e:
        raise ValidationError(f"Invalid created_at: {value!r}", field="created_at") from e
    if not isinstance(value, datetime):
        raise ValidationError(f"Invalid created_at: {value!r}", field="created_at")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _success_metrics(data: dict[str, Any]) -> tuple[float, int]:
    metrics = data.get("success_metrics")
    if metrics is None:
        # Flat payloads keep the metrics at the top level
        metrics = data
    metrics = _require_mapping(metrics, "success_metrics")
    success_rate = clamp(_number(metrics, "success_rate"))
    usage_count = max(0, int(_number(metrics, "usage_count")))
    return success_rate, usage_count


# =============================================================================
# Entities
# =============================================================================


@dataclass
class Pattern:
    """A recorded implementation pattern."""

    pattern_id: str
    pattern_name: str
    complexity_level: ComplexityLevel
    success_rate: float = 0.0
    usage_count: int = 0
    description: str = ""
    technology_stack: list[str] = field(default_factory=list)
    implementation_steps: list[str] = field(default_factory=list)
    gotchas: list[str] = field(default_factory=list)
    implementation_approach: str | None = None
    references: list[str] = field(default_factory=list)
    embedding: list[float] | None = None

    kind = EntityKind.PATTERN

    @property
    def id(self) -> str:
        return self.pattern_id

    def natural_sort_key(self) -> tuple:
        """Fallback order: success_rate desc, usage_count desc."""
        return (-self.success_rate, -self.usage_count, self.pattern_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Pattern:
        data = _require_mapping(data, "pattern")
        success_rate, usage_count = _success_metrics(data)
        return cls(
            pattern_id=_text(data, "pattern_id", "id", "_id"),
            pattern_name=_text(data, "pattern_name", "title", default="Unnamed Pattern"),
            complexity_level=parse_enum(
                ComplexityLevel,
                data.get("complexity_level", ComplexityLevel.INTERMEDIATE.value),
                "complexity_level",
            ),
            success_rate=success_rate,
            usage_count=usage_count,
            description=_text(data, "description"),
            technology_stack=_str_list(data, "technology_stack"),
            implementation_steps=_str_list(data, "implementation_steps"),
            gotchas=_str_list(data, "gotchas"),
            implementation_approach=data.get("implementation_approach"),
            references=_str_list(data, "references"),
            embedding=data.get("embedding"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern_id": self.pattern_id,
            "pattern_name": self.pattern_name,
            "description": self.description,
            "technology_stack": list(self.technology_stack),
            "complexity_level": self.complexity_level.value,
            "success_metrics": {
                "success_rate": self.success_rate,
                "usage_count": self.usage_count,
            },
            "implementation_steps": list(self.implementation_steps),
            "gotchas": list(self.gotchas),
            "implementation_approach": self.implementation_approach,
            "references": list(self.references),
        }


@dataclass
class Rule:
    """A project rule with an enforcement level."""

    rule_id: str
    rule_name: str
    enforcement_level: EnforcementLevel
    priority: int = 0
    description: str = ""
    technology_stack: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    embedding: list[float] | None = None

    kind = EntityKind.RULE

    @property
    def id(self) -> str:
        return self.rule_id

    def natural_sort_key(self) -> tuple:
        """Fallback order: mandatory first, then priority ascending."""
        return (self.enforcement_level.rank, self.priority, self.rule_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rule:
        data = _require_mapping(data, "rule")
        return cls(
            rule_id=_text(data, "rule_id", "id", "_id"),
            rule_name=_text(data, "rule_name", "title", default="Unnamed Rule"),
            enforcement_level=parse_enum(
                EnforcementLevel,
                data.get("enforcement_level", EnforcementLevel.OPTIONAL.value),
                "enforcement_level",
            ),
            priority=int(_number(data, "priority")),
            description=_text(data, "description", "content"),
            technology_stack=_str_list(data, "technology_stack"),
            examples=_str_list(data, "examples"),
            embedding=data.get("embedding"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "description": self.description,
            "technology_stack": list(self.technology_stack),
            "enforcement_level": self.enforcement_level.value,
            "priority": self.priority,
            "examples": list(self.examples),
        }


@dataclass
class ResearchItem:
    """A research note: documentation, insights and pitfalls for a topic."""

    research_id: str
    topic: str
    freshness_score: float = 0.0
    summary: str = ""
    technology_stack: list[str] = field(default_factory=list)
    documentation_urls: list[str] = field(default_factory=list)
    key_insights: list[str] = field(default_factory=list)
    common_pitfalls: list[str] = field(default_factory=list)
    embedding: list[float] | None = None

    kind = EntityKind.RESEARCH

    @property
    def id(self) -> str:
        return self.research_id

    def natural_sort_key(self) -> tuple:
        """Fallback order: freshest first."""
        return (-self.freshness_score, self.research_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResearchItem:
        data = _require_mapping(data, "research item")
        return cls(
            research_id=_text(data, "research_id", "id", "_id"),
            topic=_text(data, "topic", "title", default="Untitled research"),
            freshness_score=clamp(_number(data, "freshness_score")),
            summary=_text(data, "summary"),
            technology_stack=_str_list(data, "technology_stack"),
            documentation_urls=_str_list(data, "documentation_urls"),
            key_insights=_str_list(data, "key_insights"),
            common_pitfalls=_str_list(data, "common_pitfalls"),
            embedding=data.get("embedding"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "research_id": self.research_id,
            "topic": self.topic,
            "summary": self.summary,
            "technology_stack": list(self.technology_stack),
            "freshness_score": self.freshness_score,
            "documentation_urls": list(self.documentation_urls),
            "key_insights": list(self.key_insights),
            "common_pitfalls": list(self.common_pitfalls),
        }


Entity = Union[Pattern, Rule, ResearchItem]

ENTITY_TYPES: dict[EntityKind, type] = {
    EntityKind.PATTERN: Pattern,
    EntityKind.RULE: Rule,
    EntityKind.RESEARCH: ResearchItem,
}


def entity_from_dict(kind: EntityKind, data: dict[str, Any]) -> Entity:
    """Parse a payload into the record type for ``kind``."""
    return ENTITY_TYPES[kind].from_dict(data)


@dataclass
class Template:
    """A guidance document template."""

    template_id: str
    template_name: str
    complexity_level: ComplexityLevel
    feature_types: list[str] = field(default_factory=list)
    success_rate: float = 0.0
    usage_count: int = 0
    created_at: datetime = field(
        default_factory=lambda: datetime(1970, 1, 1, tzinfo=timezone.utc)
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Template:
        data = _require_mapping(data, "template")
        success_rate, usage_count = _success_metrics(data)
        return cls(
            template_id=_text(data, "template_id", "id", "_id"),
            template_name=_text(data, "template_name", "name", default="Unnamed Template"),
            complexity_level=parse_enum(
                ComplexityLevel,
                data.get("complexity_level", ComplexityLevel.INTERMEDIATE.value),
                "complexity_level",
            ),
            feature_types=_str_list(data, "feature_types"),
            success_rate=success_rate,
            usage_count=usage_count,
            created_at=_timestamp(data.get("created_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "template_name": self.template_name,
            "feature_types": list(self.feature_types),
            "complexity_level": self.complexity_level.value,
            "success_metrics": {
                "success_rate": self.success_rate,
                "usage_count": self.usage_count,
            },
            "created_at": self.created_at.isoformat(),
        }


# =============================================================================
# Transient pipeline records
# =============================================================================


@dataclass
class RetrievalQuery:
    """A validated ``research`` request."""

    feature_request: str
    technology_stack: list[str] = field(default_factory=list)
    success_rate_threshold: float = 0.7
    max_results: int = 10
    include_research: bool = True


@dataclass
class StoreHit:
    """A raw store result: an entity plus its vector similarity, if any."""

    entity: Entity
    similarity: float | None = None


@dataclass
class ScoredCandidate:
    """An entity with its composite relevance score."""

    entity: Entity
    relevance_score: float
    similarity: float | None = None

    @property
    def kind(self) -> EntityKind:
        return self.entity.kind

    def to_dict(self) -> dict[str, Any]:
        data = self.entity.to_dict()
        data["relevance_score"] = self.relevance_score
        return data

    @classmethod
    def from_dict(cls, kind: EntityKind, data: dict[str, Any]) -> ScoredCandidate:
        data = _require_mapping(data, f"{kind.value} result")
        return cls(
            entity=entity_from_dict(kind, data),
            relevance_score=round_score(_number(data, "relevance_score")),
        )


@dataclass
class AssembledContext:
    """The ranked, truncated context a document is generated from."""

    selected_patterns: list[ScoredCandidate] = field(default_factory=list)
    prioritized_rules: list[ScoredCandidate] = field(default_factory=list)
    relevant_research: list[ScoredCandidate] = field(default_factory=list)
    context_quality_score: float = 0.0
    assembly_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def patterns(self) -> list[Pattern]:
        return [c.entity for c in self.selected_patterns]

    @property
    def rules(self) -> list[Rule]:
        return [c.entity for c in self.prioritized_rules]

    @property
    def research(self) -> list[ResearchItem]:
        return [c.entity for c in self.relevant_research]

    def to_dict(self) -> dict[str, Any]:
        return {
            "selected_patterns": [c.to_dict() for c in self.selected_patterns],
            "prioritized_rules": [c.to_dict() for c in self.prioritized_rules],
            "relevant_research": [c.to_dict() for c in self.relevant_research],
            "context_quality_score": self.context_quality_score,
            "assembly_metadata": dict(self.assembly_metadata),
        }


@dataclass
class ConfidenceMetrics:
    """Bounded sub-confidences and their weighted overall score."""

    template_confidence: float = 0.0
    context_confidence: float = 0.0
    pattern_confidence: float = 0.0
    rule_confidence: float = 0.0
    research_confidence: float = 0.0
    overall_confidence: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "overall_confidence": self.overall_confidence,
            "template_confidence": self.template_confidence,
            "context_confidence": self.context_confidence,
            "pattern_confidence": self.pattern_confidence,
            "rule_confidence": self.rule_confidence,
            "research_confidence": self.research_confidence,
        }

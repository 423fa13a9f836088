"""Deterministic guidance document (PRP) generation.

A document is an ordered list of ``(section_id, render)`` pairs. Each render
function is pure: it takes a DocumentRequest and returns the section's lines.
The generation timestamp is the only value that varies between runs and is
passed in explicitly, rendered on a single footer line.

Section order:
    goal, why, what, context, gotchas, blueprint, rules, validation,
    checklist, anti_patterns
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from context_engineering.models import (
    AssembledContext,
    EnforcementLevel,
    Template,
    ValidationStrictness,
)

STANDARD_SUCCESS_RATE = 0.7
STRICT_SUCCESS_RATE = 0.9


@dataclass(frozen=True)
class ValidationCommands:
    """Commands shown in the validation loop.

    These are placeholders supplied by the caller's project; the generator
    only renders them.
    """

    syntax_style: tuple[str, ...] = (
        "<lint command>        # e.g. project linter",
        "<type-check command>  # e.g. project type checker",
        "<format command>      # e.g. project formatter",
    )
    unit_tests: tuple[str, ...] = ("<unit test command>",)
    integration: tuple[str, ...] = ("<integration test command>",)


@dataclass(frozen=True)
class DocumentRequest:
    """Everything a section renderer may read."""

    feature_request: str
    template: Template
    context: AssembledContext
    strictness: ValidationStrictness
    commands: ValidationCommands = field(default_factory=ValidationCommands)
    universal_rules: str | None = None


SectionRenderer = Callable[[DocumentRequest], list[str]]


def _percent(value: float) -> str:
    return f"{round(value * 100)}%"


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def render_goal(request: DocumentRequest) -> list[str]:
    template = request.template
    return [
        "## Goal",
        request.feature_request,
        "",
        f"**Template:** {template.template_name} ({template.complexity_level.value})",
    ]


def render_why(request: DocumentRequest) -> list[str]:
    patterns = request.context.patterns
    lines = ["## Why"]
    if not patterns:
        lines.append(
            "- No recorded patterns matched this request; validate the approach "
            "with a small spike before committing to it"
        )
        return lines

    for pattern in patterns:
        lines.append(
            f"- {pattern.pattern_name}: {_percent(pattern.success_rate)} success rate "
            f"across {pattern.usage_count} recorded uses"
        )
    average = sum(p.success_rate for p in patterns) / len(patterns)
    lines.append(f"- Average success rate of selected patterns: {_percent(average)}")
    return lines


def render_what(request: DocumentRequest) -> list[str]:
    lines = [
        "## What",
        f"Deliver \"{request.feature_request}\" following the patterns and rules below.",
        "",
        "### Success Criteria",
    ]
    for pattern in request.context.patterns:
        lines.append(f"- [ ] {pattern.pattern_name} implementation successful")
    if any(r.enforcement_level == EnforcementLevel.MANDATORY for r in request.context.rules):
        lines.append("- [ ] All mandatory project rules satisfied")
    lines.append("- [ ] Validation loop passes at every level")
    return lines


def render_context(request: DocumentRequest) -> list[str]:
    research = request.context.research
    patterns = request.context.patterns
    lines = ["## All Needed Context"]

    if not research and not patterns:
        lines.append(
            "No recorded documentation or pattern references. Review the codebase "
            "and official documentation before implementing."
        )
        return lines

    lines += ["", "### Documentation & References", "```yaml"]
    for item in research:
        for url in item.documentation_urls:
            lines += [f"- url: {url}", f"  why: {item.topic} best practices"]
        for insight in item.key_insights:
            lines.append(f"- insight: {insight}")
    for pattern in patterns:
        for reference in pattern.references:
            lines += [f"- ref: {reference}", f"  why: source of {pattern.pattern_name}"]
    lines.append("```")

    if patterns:
        lines += ["", "### Similar Patterns", "```yaml"]
        for pattern in patterns:
            lines.append(f"- pattern: {pattern.pattern_name}")
            if pattern.implementation_approach:
                lines.append(f"  approach: {pattern.implementation_approach}")
            lines.append(f"  success_rate: {pattern.success_rate:.2f}")
        lines.append("```")
    return lines


def render_gotchas(request: DocumentRequest) -> list[str]:
    gotchas = _unique([g for p in request.context.patterns for g in p.gotchas])
    lines = ["## Known Gotchas"]
    if not gotchas:
        lines.append("- None recorded for the selected patterns")
        return lines
    lines += [f"- {gotcha}" for gotcha in gotchas]
    return lines


def render_blueprint(request: DocumentRequest) -> list[str]:
    patterns = request.context.patterns
    lines = ["## Implementation Blueprint"]
    if not patterns:
        lines += [
            "1. Review existing project conventions",
            "2. Implement the core feature logic",
            "3. Add tests for the happy path, edge cases and error handling",
            "4. Integrate and update documentation",
        ]
        return lines

    for index, pattern in enumerate(patterns, start=1):
        lines += ["", f"### Task {index}: {pattern.pattern_name}"]
        if pattern.description:
            lines.append(pattern.description)
        steps = pattern.implementation_steps or [
            f"Follow the {pattern.pattern_name} approach"
        ]
        lines += [f"{n}. {step}" for n, step in enumerate(steps, start=1)]
    return lines


def render_rules(request: DocumentRequest) -> list[str]:
    lines = ["## Project Rules"]
    if request.universal_rules:
        lines += ["", "### Universal Rules", request.universal_rules]

    rules = request.context.rules
    if not rules:
        lines.append("- No project rules recorded for this stack")
        return lines

    for level in EnforcementLevel:
        level_rules = [r for r in rules if r.enforcement_level == level]
        if not level_rules:
            continue
        lines += ["", f"### {level.value.title()}"]
        for rule in level_rules:
            lines.append(f"- **{rule.rule_name}** (priority {rule.priority}): {rule.description}")
            lines += [f"  - Example: {example}" for example in rule.examples]
    return lines


def render_validation(request: DocumentRequest) -> list[str]:
    commands = request.commands
    levels = [
        ("Level 1: Syntax & Style", commands.syntax_style),
        ("Level 2: Unit Tests", commands.unit_tests),
        ("Level 3: Integration Test", commands.integration),
    ]
    lines = ["## Validation Loop"]
    for title, level_commands in levels:
        lines += ["", f"### {title}", "```bash", *level_commands, "```"]
    return lines


def render_checklist(request: DocumentRequest) -> list[str]:
    lines = [
        "## Final Validation Checklist",
        "- [ ] All tests pass",
        "- [ ] No linting or type errors",
        "- [ ] Error cases handled gracefully",
        "- [ ] All mandatory rules followed",
    ]
    if request.strictness != ValidationStrictness.BASIC:
        lines.append(f"- [ ] Applied patterns have success rate >= {STANDARD_SUCCESS_RATE}")
    if request.strictness == ValidationStrictness.STRICT:
        lines.append(f"- [ ] Applied patterns have success rate >= {STRICT_SUCCESS_RATE}")
        lines.append("- [ ] All known gotchas mitigated")
    return lines


def render_anti_patterns(request: DocumentRequest) -> list[str]:
    pitfalls = _unique([p for r in request.context.research for p in r.common_pitfalls])
    lines = ["## Anti-Patterns to Avoid"]
    if not pitfalls:
        pitfalls = [
            "Don't skip the validation loop",
            "Don't ignore mandatory project rules",
            "Don't introduce patterns that contradict existing conventions",
        ]
    lines += [f"- {pitfall}" for pitfall in pitfalls]
    return lines


DEFAULT_SECTIONS: list[tuple[str, SectionRenderer]] = [
    ("goal", render_goal),
    ("why", render_why),
    ("what", render_what),
    ("context", render_context),
    ("gotchas", render_gotchas),
    ("blueprint", render_blueprint),
    ("rules", render_rules),
    ("validation", render_validation),
    ("checklist", render_checklist),
    ("anti_patterns", render_anti_patterns),
]


class DocumentGenerator:
    """Renders a guidance document from an assembled context.

    Output is a pure function of the inputs to ``generate``; calling it twice
    with identical arguments yields byte-identical text.
    """

    def __init__(
        self,
        commands: ValidationCommands | None = None,
        universal_rules: str | None = None,
        sections: list[tuple[str, SectionRenderer]] | None = None,
    ):
        self.commands = commands or ValidationCommands()
        self.universal_rules = universal_rules
        self.sections = list(sections or DEFAULT_SECTIONS)

    @property
    def section_ids(self) -> list[str]:
        return [section_id for section_id, _ in self.sections]

    def build_request(
        self,
        feature_request: str,
        template: Template,
        context: AssembledContext,
        strictness: ValidationStrictness,
    ) -> DocumentRequest:
        return DocumentRequest(
            feature_request=feature_request,
            template=template,
            context=context,
            strictness=strictness,
            commands=self.commands,
            universal_rules=self.universal_rules,
        )

    def render_section(self, section_id: str, request: DocumentRequest) -> str:
        """Render a single section by id."""
        for candidate_id, render in self.sections:
            if candidate_id == section_id:
                return "\n".join(render(request))
        raise KeyError(f"Unknown section: {section_id}")

    def generate(
        self,
        feature_request: str,
        template: Template,
        context: AssembledContext,
        strictness: ValidationStrictness = ValidationStrictness.STANDARD,
        generated_at: str | None = None,
    ) -> str:
        """Generate the full document text.

        Args:
            feature_request: What the caller wants to build
            template: Selected template
            context: Assembled context
            strictness: Checklist strictness
            generated_at: Timestamp rendered on the footer line; omitted when None

        Returns:
            Markdown document text
        """
        request = self.build_request(feature_request, template, context, strictness)

        blocks = [f"# PRP: {feature_request}"]
        for _section_id, render in self.sections:
            blocks.append("\n".join(render(request)))

        if generated_at is not None:
            blocks.append(f"---\nGenerated: {generated_at}")

        return "\n\n".join(blocks) + "\n"

"""Assembly module for context-engineering.

Turns research results into a guidance document:

- **ContextAssembler**: complexity filter, ranking, caps, context quality
- **TemplateSelector**: best-fit template by compatibility score
- **DocumentGenerator**: deterministic fixed-section document rendering
- **ConfidenceCalculator**: overall confidence from sub-scores
"""

from .assembler import (
    DEFAULT_ASSEMBLY_WEIGHTS,
    AssemblyWeights,
    ContextAssembler,
    filter_by_complexity,
)
from .confidence import ConfidenceCalculator, ConfidenceWeights
from .document import (
    DEFAULT_SECTIONS,
    DocumentGenerator,
    DocumentRequest,
    ValidationCommands,
)
from .templates import (
    DEFAULT_TEMPLATE,
    CompatibilityWeights,
    TemplateSelection,
    TemplateSelector,
)

__all__ = [
    # Assembler
    "AssemblyWeights",
    "ContextAssembler",
    "DEFAULT_ASSEMBLY_WEIGHTS",
    "filter_by_complexity",
    # Templates
    "CompatibilityWeights",
    "DEFAULT_TEMPLATE",
    "TemplateSelection",
    "TemplateSelector",
    # Document
    "DEFAULT_SECTIONS",
    "DocumentGenerator",
    "DocumentRequest",
    "ValidationCommands",
    # Confidence
    "ConfidenceCalculator",
    "ConfidenceWeights",
]

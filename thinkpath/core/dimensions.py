"""
Thinking dimensions and their concept catalog.

The five dimensions are fixed. Each owns a list of concept keys that
ConceptMastery rows are recorded against; question tags are mapped onto
those keys with simple keyword rules.
"""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Concept:
    key: str
    name: str
    description: str


@dataclass(frozen=True)
class ThinkingDimension:
    id: str
    name: str
    concepts: tuple[Concept, ...] = field(default_factory=tuple)
    # keyword -> concept key, matched against lowercased tag text
    keywords: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @property
    def concept_keys(self) -> list[str]:
        return [c.key for c in self.concepts]

    def get_concept(self, key: str) -> Concept | None:
        for concept in self.concepts:
            if concept.key == key:
                return concept
        return None


THINKING_DIMENSIONS: dict[str, ThinkingDimension] = {
    "fallacy_detection": ThinkingDimension(
        id="fallacy_detection",
        name="Fallacy Detection",
        concepts=(
            Concept("ad_hominem", "Ad hominem", "Attacking the arguer instead of the argument"),
            Concept("straw_man", "Straw man", "Distorting a claim and refuting the distortion"),
            Concept("false_dichotomy", "False dichotomy", "Reducing a complex issue to two options"),
            Concept("hasty_generalization", "Hasty generalization", "Drawing broad conclusions from few cases"),
            Concept("appeal_to_authority", "Appeal to authority", "Accepting a claim only because an authority said it"),
            Concept("circular_reasoning", "Circular reasoning", "Using the conclusion to prove itself"),
        ),
        keywords=(
            ("ad hominem", "ad_hominem"),
            ("personal attack", "ad_hominem"),
            ("straw", "straw_man"),
            ("dichotomy", "false_dichotomy"),
            ("either-or", "false_dichotomy"),
            ("black and white", "false_dichotomy"),
            ("hasty", "hasty_generalization"),
            ("generaliz", "hasty_generalization"),
            ("authority", "appeal_to_authority"),
            ("circular", "circular_reasoning"),
            ("begging the question", "circular_reasoning"),
        ),
    ),
    "causal_analysis": ThinkingDimension(
        id="causal_analysis",
        name="Causal Analysis & Trade-offs",
        concepts=(
            Concept("correlation_vs_causation", "Correlation vs causation", "Co-occurrence is not cause and effect"),
            Concept("confounding_factors", "Confounding factors", "A third factor driving both variables"),
            Concept("causal_chain", "Causal chain", "A complete mechanism from cause to effect"),
            Concept("necessity_sufficiency", "Necessity and sufficiency", "Necessary versus sufficient conditions"),
            Concept("reverse_causality", "Reverse causality", "The effect may be driving the cause"),
        ),
        keywords=(
            ("correlation", "correlation_vs_causation"),
            ("causation", "correlation_vs_causation"),
            ("confound", "confounding_factors"),
            ("third variable", "confounding_factors"),
            ("causal chain", "causal_chain"),
            ("mechanism", "causal_chain"),
            ("necessary", "necessity_sufficiency"),
            ("sufficient", "necessity_sufficiency"),
            ("reverse", "reverse_causality"),
            ("bidirectional", "reverse_causality"),
        ),
    ),
    "premise_challenge": ThinkingDimension(
        id="premise_challenge",
        name="Premise Challenge & Method Critique",
        concepts=(
            Concept("implicit_premises", "Implicit premises", "Unstated assumptions an argument relies on"),
            Concept("premise_evaluation", "Premise evaluation", "Whether premises are reasonable and supported"),
            Concept("reframe_problem", "Reframing", "Redefining the problem from another angle"),
            Concept("assumption_testing", "Assumption testing", "Designing checks for key assumptions"),
            Concept("value_judgement", "Value judgements", "Values and ideology hidden in an argument"),
        ),
        keywords=(
            ("implicit", "implicit_premises"),
            ("hidden assumption", "implicit_premises"),
            ("premise", "premise_evaluation"),
            ("reasonable", "premise_evaluation"),
            ("refram", "reframe_problem"),
            ("redefin", "reframe_problem"),
            ("testing", "assumption_testing"),
            ("verif", "assumption_testing"),
            ("value", "value_judgement"),
            ("ideolog", "value_judgement"),
        ),
    ),
    "iterative_reflection": ThinkingDimension(
        id="iterative_reflection",
        name="Iterative Reflection",
        concepts=(
            Concept("metacognition", "Metacognition", "Awareness of one's own thinking"),
            Concept("thinking_patterns", "Thinking patterns", "Habitual ways of thinking and blind spots"),
            Concept("feedback_integration", "Feedback integration", "Folding feedback into better thinking"),
            Concept("iterative_improvement", "Iterative improvement", "Improving through repeated practice"),
            Concept("error_analysis", "Error analysis", "Finding root causes of thinking errors"),
        ),
        keywords=(
            ("metacogn", "metacognition"),
            ("reflect", "metacognition"),
            ("habit", "thinking_patterns"),
            ("blind spot", "thinking_patterns"),
            ("feedback", "feedback_integration"),
            ("iterat", "iterative_improvement"),
            ("improv", "iterative_improvement"),
            ("error", "error_analysis"),
            ("mistake", "error_analysis"),
        ),
    ),
    "connection_transfer": ThinkingDimension(
        id="connection_transfer",
        name="Connection & Transfer",
        concepts=(
            Concept("deep_structure", "Deep structure", "The shared structure behind different problems"),
            Concept("analogical_thinking", "Analogical thinking", "Applying one domain's knowledge to another by analogy"),
            Concept("abstraction", "Abstraction", "Extracting general principles from cases"),
            Concept("cross_domain_transfer", "Cross-domain transfer", "Moving a method to an unrelated domain"),
            Concept("pattern_recognition", "Pattern recognition", "Spotting similar patterns across situations"),
        ),
        keywords=(
            ("structure", "deep_structure"),
            ("analog", "analogical_thinking"),
            ("abstract", "abstraction"),
            ("cross-domain", "cross_domain_transfer"),
            ("transfer", "cross_domain_transfer"),
            ("pattern", "pattern_recognition"),
        ),
    ),
}

# Canonical order: path generation, tie-breaking and listings follow it.
DIMENSION_ORDER: tuple[str, ...] = (
    "fallacy_detection",
    "causal_analysis",
    "premise_challenge",
    "iterative_reflection",
    "connection_transfer",
)

MIN_LEVEL = 1
MAX_LEVEL = 5


def get_dimension(dimension_id: str) -> ThinkingDimension | None:
    """Look up a dimension by id."""
    return THINKING_DIMENSIONS.get(dimension_id)


def is_valid_dimension(dimension_id: str) -> bool:
    return dimension_id in THINKING_DIMENSIONS


def extract_concepts_from_tags(dimension_id: str, tags: list[str]) -> list[str]:
    """
    Map free-form question tags to concept keys of a dimension.

    Tags that already are concept keys map directly; the rest are matched
    against the dimension's keyword rules. When nothing matches, the
    dimension's first concept is returned so every scored answer lands
    somewhere. Unknown dimensions yield an empty list.
    """
    dimension = get_dimension(dimension_id)
    if dimension is None:
        return []

    found: list[str] = []
    known = set(dimension.concept_keys)
    for tag in tags:
        if tag in known and tag not in found:
            found.append(tag)

    tag_text = " ".join(tags).lower()
    for keyword, concept_key in dimension.keywords:
        if keyword in tag_text and concept_key not in found:
            found.append(concept_key)

    if not found and dimension.concepts:
        found.append(dimension.concepts[0].key)
    return found

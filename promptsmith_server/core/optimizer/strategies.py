"""Strategy catalog: the fixed, ordered set of rewriting approaches."""

from typing import Optional

from .types import OptimizationRequest, Strategy

_REWRITE_BODY = """Original: {original_prompt}

Rules:
- Preserve the user's original task and intent exactly.
- You are optimizing a PROMPT, not answering it directly.
- Do NOT answer the user's question - only improve how they ask it.
- Do NOT produce a meta-prompt: the improved prompt must ask for exactly what the original asks for, never for another prompt.
- Return ONLY the improved prompt enclosed between <optimized_prompt> and </optimized_prompt> with no other text.
- Do not use markdown fences or commentary.
- Do not change the task into writing code unless the original prompt explicitly requested code.{output_directive}{token_directive}{influence_block}{task_context}"""


def _rewrite_template(directive: str) -> str:
    return (
        "You are a prompt optimization expert. "
        f"{directive} "
        "Do NOT answer the prompt - only improve how it asks the question:\n\n" + _REWRITE_BODY
    )


def _strategy(name: str, display_name: str, directive: str, weight: float) -> Strategy:
    return Strategy(
        name=name,
        display_name=display_name,
        directive=directive,
        rewrite_template=_rewrite_template(directive),
        weight=weight,
    )


STRATEGIES: tuple[Strategy, ...] = (
    _strategy(
        "clarity",
        "Clarity Enhancement",
        "Your job is to take the given prompt and make it clearer and unambiguous.",
        0.30,
    ),
    _strategy(
        "specificity",
        "Specificity Improvement",
        "Your job is to add specific details, examples and concrete detail to make this prompt more precise.",
        0.25,
    ),
    _strategy(
        "structure",
        "Structure and Steps",
        "Your job is to improve the logical structure with step-by-step instructions and clear sections.",
        0.15,
    ),
    _strategy(
        "efficiency",
        "Efficiency Optimization",
        "Your job is to remove redundancy and tighten the wording while keeping every directive.",
        0.20,
    ),
    _strategy(
        "constraints",
        "Constraints and Format",
        "Your job is to add constraints, acceptance criteria, and an explicit output format directive.",
        0.10,
    ),
)

_BY_NAME = {strategy.name: strategy for strategy in STRATEGIES}


def get_strategy(name: str) -> Strategy:
    """Look up a strategy by its unique key.

    Raises:
        KeyError: If no strategy has that name
    """
    return _BY_NAME[name]


def cycle_strategies(count: int) -> list[Strategy]:
    """Strategies for ``count`` variant slots, wrapping around the catalog."""
    return [STRATEGIES[i % len(STRATEGIES)] for i in range(count)]


def influence_strength(weight: int) -> str:
    if weight < 30:
        return "MINIMAL"
    if weight < 60:
        return "MODERATE"
    return "STRONG"


def build_influence_block(influence_text: Optional[str], influence_weight: int) -> str:
    """Style-guidance clause for the reference template, scaled by weight."""
    if not influence_text or not influence_text.strip():
        return ""

    if influence_weight <= 0:
        return (
            "\n\n=== INFLUENCE: DISABLED (0%) ===\n"
            "A reference template was provided but set to 0% - COMPLETELY IGNORE IT. "
            "Focus only on the original prompt."
        )

    strength = influence_strength(influence_weight)
    remainder = 100 - influence_weight
    block = (
        f"\n\n=== INFLUENCE TEMPLATE ({influence_weight}% weight) ===\n"
        f'Reference template:\n"{influence_text.strip()}"\n\n'
        f"Influence rules (apply identically to every variant):\n"
        f"- {influence_weight}% = {strength} influence\n"
    )
    if strength == "MINIMAL":
        block += (
            "- Use the template for light inspiration only (tone and style hints)\n"
            f"- Primary focus: {remainder}% on the original prompt\n"
            "- Do not copy template structure, phrasing, or patterns"
        )
    elif strength == "MODERATE":
        block += (
            "- Balance template guidance with the original style\n"
            f"- Blend template patterns with the user's approach ({influence_weight}% template / {remainder}% original)\n"
            "- Adapt helpful template elements while preserving the original intent"
        )
    else:
        block += (
            "- Closely follow the template's patterns and structure\n"
            f"- Adapt the template approach ({influence_weight}%) to the user's specific needs ({remainder}%)\n"
            "- The template is the primary guide; the original prompt provides the topic"
        )
    return block


def build_output_directive(output_type: str) -> str:
    if output_type == "text":
        return ""
    return (
        f"\n- Ensure the improved prompt clearly instructs the AI to RESPOND in {output_type} format "
        "(this affects the AI's response format only, not the prompt itself)."
    )


def build_token_directive(max_tokens: Optional[int]) -> str:
    if not max_tokens:
        return ""
    return (
        "\n- Integrate the token limit naturally into the prompt as a constraint, for example "
        f'"Keep the response within {max_tokens} tokens", rather than appending it as metadata.'
    )


def build_rewrite_instruction(strategy: Strategy, request: OptimizationRequest) -> str:
    """Render a strategy's rewrite template for one request."""
    task_context = f"\n\nContext: {request.task_description}" if request.task_description else ""
    return strategy.rewrite_template.format(
        original_prompt=request.original_prompt,
        output_directive=build_output_directive(request.output_type),
        token_directive=build_token_directive(request.max_tokens),
        influence_block=build_influence_block(request.influence_text, request.influence_weight),
        task_context=task_context,
    )

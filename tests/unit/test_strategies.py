"""Unit tests for the strategy catalog and rewrite instructions."""

import pytest

from promptsmith_server.core.optimizer.strategies import (
    STRATEGIES,
    build_influence_block,
    build_rewrite_instruction,
    cycle_strategies,
    get_strategy,
    influence_strength,
)
from promptsmith_server.core.optimizer.types import OptimizationRequest


def make_request(**overrides) -> OptimizationRequest:
    fields = {
        "original_prompt": "Summarize this article about solar power",
        "provider": "openai",
        "model": "gpt-4o-mini",
        "output_type": "text",
    }
    fields.update(overrides)
    return OptimizationRequest(**fields)


def test_catalog_order_and_weights():
    assert [s.name for s in STRATEGIES] == ["clarity", "specificity", "structure", "efficiency", "constraints"]
    assert [s.weight for s in STRATEGIES] == [0.30, 0.25, 0.15, 0.20, 0.10]
    assert sum(s.weight for s in STRATEGIES) == pytest.approx(1.0)


def test_strategy_names_are_unique():
    assert len({s.name for s in STRATEGIES}) == len(STRATEGIES)


def test_cycle_wraps_around_catalog():
    names = [s.name for s in cycle_strategies(7)]
    assert names == [
        "clarity",
        "specificity",
        "structure",
        "efficiency",
        "constraints",
        "clarity",
        "specificity",
    ]


def test_get_strategy_unknown_name():
    with pytest.raises(KeyError):
        get_strategy("verbosity")


@pytest.mark.parametrize(
    "weight,expected",
    [(1, "MINIMAL"), (29, "MINIMAL"), (30, "MODERATE"), (59, "MODERATE"), (60, "STRONG"), (100, "STRONG")],
)
def test_influence_strength_thresholds(weight, expected):
    assert influence_strength(weight) == expected


class TestInfluenceBlock:
    def test_no_influence_text(self):
        assert build_influence_block(None, 80) == ""
        assert build_influence_block("   ", 80) == ""

    def test_zero_weight_disables_template(self):
        block = build_influence_block("Friendly, upbeat tone.", 0)
        assert "COMPLETELY IGNORE" in block

    def test_moderate_weight(self):
        block = build_influence_block("Friendly, upbeat tone.", 45)
        assert "45% = MODERATE" in block
        assert "45% template / 55% original" in block
        assert '"Friendly, upbeat tone."' in block


class TestRewriteInstruction:
    def test_contains_prompt_directive_and_tag_rule(self):
        strategy = get_strategy("clarity")
        instruction = build_rewrite_instruction(strategy, make_request())

        assert "Summarize this article about solar power" in instruction
        assert strategy.directive in instruction
        assert "<optimized_prompt>" in instruction
        assert "meta-prompt" in instruction

    def test_text_output_has_no_format_directive(self):
        instruction = build_rewrite_instruction(get_strategy("clarity"), make_request(output_type="text"))
        assert "RESPOND in" not in instruction

    def test_non_text_output_adds_format_directive(self):
        instruction = build_rewrite_instruction(get_strategy("clarity"), make_request(output_type="json"))
        assert "RESPOND in json format" in instruction

    def test_token_limit_and_task_context(self):
        request = make_request(max_tokens=300, task_description="Newsletter for homeowners")
        instruction = build_rewrite_instruction(get_strategy("constraints"), request)

        assert "Keep the response within 300 tokens" in instruction
        assert "Context: Newsletter for homeowners" in instruction

    def test_influence_block_identical_across_strategies(self):
        request = make_request(influence_text="Use short, punchy sentences.", influence_weight=70)
        block = build_influence_block(request.influence_text, request.influence_weight)

        for strategy in STRATEGIES:
            assert block in build_rewrite_instruction(strategy, request)

    def test_braces_in_prompt_are_preserved(self):
        request = make_request(original_prompt="Greet {name} warmly")
        instruction = build_rewrite_instruction(get_strategy("efficiency"), request)
        assert "Greet {name} warmly" in instruction

"""Tests for selectors."""

import pytest

from pyrag.exceptions import DecodeError, InvalidArgumentError
from pyrag.llms import MockLLM
from pyrag.selectors import (
    LLMMultiSelector,
    LLMSingleSelector,
    SelectorResult,
    SimpleSelector,
    SingleSelection,
    SingleSelector,
    build_choices_text,
    parse_selection_output,
)
from pyrag.tools import ToolMetadata

CHOICES = [
    ToolMetadata(name="pets", description="Questions about cats and dogs"),
    "Questions about the stock market",
    ToolMetadata(name="weather", description="Weather forecasts"),
]


class TestParseSelectionOutput:
    """Tests for parse_selection_output."""

    def test_array(self):
        output = 'Sure: [{"choice": 2, "reason": "money"}, {"choice": 3, "reason": "rain"}] done'
        selections = parse_selection_output(output)
        assert [s.index for s in selections] == [1, 2]
        assert selections[0].reason == "money"

    def test_single_object(self):
        selections = parse_selection_output('{"choice": "1", "reason": "cats"}')
        assert selections == [SingleSelection(index=0, reason="cats")]

    @pytest.mark.parametrize("output", [
        "no json here",
        '[{"reason": "missing choice"}]',
        '{"choice": "first"}',
    ])
    def test_invalid(self, output):
        with pytest.raises(DecodeError):
            parse_selection_output(output)


class TestSelectorResult:
    """Tests for SelectorResult accessors."""

    def test_single_accessors(self):
        result = SelectorResult(selections=[SingleSelection(index=2, reason="why")])
        assert result.ind == 2
        assert result.reason == "why"

    def test_single_accessors_need_one_selection(self):
        result = SelectorResult(selections=[SingleSelection(index=0), SingleSelection(index=1)])
        assert result.inds == [0, 1]
        with pytest.raises(InvalidArgumentError):
            _ = result.ind
        with pytest.raises(InvalidArgumentError):
            _ = SelectorResult().reason


class TestSelectors:
    """Tests for the selector implementations."""

    def test_choices_text(self):
        assert build_choices_text(CHOICES[:2]) == (
            "(1) Questions about cats and dogs\n\n(2) Questions about the stock market"
        )

    @pytest.mark.asyncio
    async def test_simple_and_single(self):
        assert (await SimpleSelector().select(CHOICES, "q")).inds == [0, 1, 2]
        assert (await SingleSelector().select(CHOICES, "q")).inds == [0]
        assert (await SingleSelector().select([], "q")).inds == []

    @pytest.mark.asyncio
    async def test_llm_single_selector(self):
        """Test the prompt lists every choice and the answer is 0-based."""
        llm = MockLLM(default_response='[{"choice": 3, "reason": "forecast"}]')
        result = await LLMSingleSelector(llm).select(CHOICES, "Will it rain tomorrow?")

        assert result.ind == 2
        assert result.reason == "forecast"
        prompt = llm.prompts[0]
        assert "(3) Weather forecasts" in prompt
        assert "Will it rain tomorrow?" in prompt

    @pytest.mark.asyncio
    async def test_llm_multi_selector_caps_outputs(self):
        llm = MockLLM(default_response='[{"choice": 1, "reason": "a"}, {"choice": 2, "reason": "b"}]')
        result = await LLMMultiSelector(llm, max_outputs=1).select(CHOICES, "cats or stocks")
        assert result.inds == [0]

    @pytest.mark.asyncio
    async def test_llm_selector_bad_answer(self):
        with pytest.raises(DecodeError):
            await LLMSingleSelector(MockLLM(default_response="I pick the second one")).select(CHOICES, "q")

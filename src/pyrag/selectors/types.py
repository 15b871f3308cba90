"""Selector results and the base selector interface."""

from abc import ABC, abstractmethod
from typing import Sequence, Union

from pydantic import BaseModel, Field

from pyrag.exceptions import InvalidArgumentError
from pyrag.tools.types import ToolMetadata

Choice = Union[ToolMetadata, str]


class SingleSelection(BaseModel):
    """One selected choice, by 0-based index."""
    index: int
    reason: str = ""


class SelectorResult(BaseModel):
    """The choices a selector picked."""
    selections: list[SingleSelection] = Field(default_factory=list)

    @property
    def ind(self) -> int:
        if len(self.selections) != 1:
            raise InvalidArgumentError(
                f"There are {len(self.selections)} selections, use inds instead"
            )
        return self.selections[0].index

    @property
    def reason(self) -> str:
        if len(self.selections) != 1:
            raise InvalidArgumentError(
                f"There are {len(self.selections)} selections, use reasons instead"
            )
        return self.selections[0].reason

    @property
    def inds(self) -> list[int]:
        return [s.index for s in self.selections]

    @property
    def reasons(self) -> list[str]:
        return [s.reason for s in self.selections]


def choice_description(choice: Choice) -> str:
    if isinstance(choice, ToolMetadata):
        return choice.description
    return choice


def build_choices_text(choices: Sequence[Choice]) -> str:
    """Render choices as a numbered ``(1) description`` list."""
    return "\n\n".join(
        f"({i}) {choice_description(choice)}" for i, choice in enumerate(choices, start=1)
    )


class BaseSelector(ABC):
    """Abstract base class for selectors."""

    @abstractmethod
    async def select(self, choices: Sequence[Choice], query: str) -> SelectorResult:
        """Pick the choices relevant to a query.

        Args:
            choices: Tool metadata or plain descriptions
            query: Query string

        Returns:
            Selections with 0-based indices into ``choices``
        """
        pass


class SimpleSelector(BaseSelector):
    """Select every choice."""

    async def select(self, choices: Sequence[Choice], query: str) -> SelectorResult:
        return SelectorResult(
            selections=[SingleSelection(index=i, reason="selected") for i in range(len(choices))]
        )


class SingleSelector(BaseSelector):
    """Select the first choice."""

    async def select(self, choices: Sequence[Choice], query: str) -> SelectorResult:
        if not choices:
            return SelectorResult()
        return SelectorResult(selections=[SingleSelection(index=0, reason="default selection")])

"""Route a query to the retrievers a selector picks."""

import logging
from typing import Any, Optional

from pyrag.exceptions import InvalidArgumentError
from pyrag.retrievers.base import BaseRetriever
from pyrag.schema import NodeWithScore, QueryBundle
from pyrag.selectors.types import BaseSelector, SimpleSelector
from pyrag.tools.retriever_tool import RetrieverTool
from pyrag.utils.aio import gather_cancel_on_error

logger = logging.getLogger(__name__)


class RouterRetriever(BaseRetriever):
    """
    Retrieve from the tools a selector chooses for the query.

    Results of the chosen retrievers are merged by node ID, keeping the
    highest score, and returned best first. The default selector picks
    every tool.
    """

    def __init__(
        self,
        retriever_tools: list[RetrieverTool],
        selector: Optional[BaseSelector] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.retriever_tools = list(retriever_tools)
        self.selector = selector or SimpleSelector()

    async def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        if not self.retriever_tools:
            raise InvalidArgumentError("RouterRetriever has no retriever tools")

        result = await self.selector.select(
            [tool.metadata for tool in self.retriever_tools], query_bundle.query_str
        )
        if not result.selections:
            raise InvalidArgumentError("Selector chose no retriever")

        chosen: list[RetrieverTool] = []
        for selection in result.selections:
            if selection.index < 0 or selection.index >= len(self.retriever_tools):
                logger.warning(
                    f"Ignoring selection {selection.index}, only {len(self.retriever_tools)} tools"
                )
                continue
            tool = self.retriever_tools[selection.index]
            if tool not in chosen:
                chosen.append(tool)
            if self.verbose:
                logger.info(f"Selected {tool.metadata.name}: {selection.reason}")

        results = await gather_cancel_on_error(tool.retriever.retrieve(query_bundle) for tool in chosen)

        merged: dict[str, NodeWithScore] = {}
        for nodes in results:
            for node in nodes:
                existing = merged.get(node.node_id)
                if existing is None or node.get_score() > existing.get_score():
                    merged[node.node_id] = node

        return sorted(merged.values(), key=lambda x: x.get_score(), reverse=True)

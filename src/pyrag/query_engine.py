"""Query engines: retrieve, postprocess, then answer with an LLM."""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Union

from pyrag.exceptions import wrap_upstream
from pyrag.llms.base import LLM
from pyrag.postprocessor import BaseNodePostprocessor
from pyrag.prompts import DEFAULT_TEXT_QA_PROMPT
from pyrag.schema import MetadataMode, NodeWithScore, QueryBundle, Response, to_query_bundle

if TYPE_CHECKING:
    from pyrag.retrievers.base import BaseRetriever

logger = logging.getLogger(__name__)


class BaseQueryEngine(ABC):
    """Abstract base class for query engines."""

    @abstractmethod
    async def query(self, query: Union[str, QueryBundle]) -> Response:
        """Answer a query.

        Args:
            query: Query string or bundle

        Returns:
            Response with the answer and the nodes it was based on
        """
        pass


class RetrieverQueryEngine(BaseQueryEngine):
    """
    Query engine over a retriever.

    Retrieved nodes pass through the postprocessors in order, are rendered
    into the QA prompt and sent to the LLM. Without an LLM the rendered
    context itself is the answer.
    """

    def __init__(
        self,
        retriever: "BaseRetriever",
        llm: Optional[LLM] = None,
        node_postprocessors: Optional[list[BaseNodePostprocessor]] = None,
        text_qa_template: str = DEFAULT_TEXT_QA_PROMPT,
    ):
        self.retriever = retriever
        self.llm = llm
        self.node_postprocessors = list(node_postprocessors or [])
        self.text_qa_template = text_qa_template

    async def retrieve(self, query: Union[str, QueryBundle]) -> list[NodeWithScore]:
        query_bundle = to_query_bundle(query)
        nodes = await self.retriever.retrieve(query_bundle)
        for postprocessor in self.node_postprocessors:
            nodes = await postprocessor.postprocess_nodes(nodes, query_bundle)
        return nodes

    async def synthesize(
        self, query: Union[str, QueryBundle], nodes: list[NodeWithScore]
    ) -> Response:
        query_bundle = to_query_bundle(query)
        context_str = "\n\n".join(
            n.get_content(metadata_mode=MetadataMode.LLM) for n in nodes
        )

        if self.llm is None:
            return Response(response=context_str, source_nodes=nodes)

        prompt = self.text_qa_template.format(
            context_str=context_str, query_str=query_bundle.query_str
        )
        answer = await wrap_upstream(self.llm.complete(prompt), "llm")
        return Response(response=answer.strip(), source_nodes=nodes)

    async def query(self, query: Union[str, QueryBundle]) -> Response:
        nodes = await self.retrieve(query)
        logger.debug(f"Synthesizing answer from {len(nodes)} nodes")
        return await self.synthesize(query, nodes)

"""Local sentence-transformers embedding model."""

import asyncio
import logging
from typing import Optional

from pyrag.embeddings.base import BaseEmbedding

logger = logging.getLogger(__name__)


class HuggingFaceEmbedding(BaseEmbedding):
    """Local embedding model using sentence-transformers.

    The model is loaded on first use and encoding runs in the default
    executor so the event loop is never blocked.

    Note: Requires the 'local' extra to be installed.
    """

    MODEL_DIMENSIONS = {
        "all-MiniLM-L6-v2": 384,
        "all-mpnet-base-v2": 768,
        "paraphrase-multilingual-MiniLM-L12-v2": 384,
        "BAAI/bge-small-en-v1.5": 384,
    }

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        device: Optional[str] = None,
        normalize: bool = True,
    ):
        self.model_name = model_name
        self.device = device
        self.normalize = normalize
        self._model = None

    @property
    def dimension(self) -> int:
        if self._model is not None:
            return self._model.get_sentence_embedding_dimension()
        return self.MODEL_DIMENSIONS.get(self.model_name, 384)

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise ImportError(
                    "Local embedding requires 'sentence-transformers'. "
                    "Install it with: pip install sentence-transformers"
                )

            self._model = SentenceTransformer(self.model_name, device=self.device)
            logger.info(f"Loaded embedding model: {self.model_name}")
        return self._model

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        model = self._get_model()

        loop = asyncio.get_running_loop()
        embeddings = await loop.run_in_executor(
            None,
            lambda: model.encode(
                texts,
                normalize_embeddings=self.normalize,
                convert_to_numpy=True,
            ),
        )
        return embeddings.tolist()

    async def embed_query(self, text: str) -> list[float]:
        embeddings = await self.embed_documents([text])
        return embeddings[0]

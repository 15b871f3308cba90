"""
Process-wide defaults for the LLM, embedding model and chunking.
"""

import logging
import threading
from typing import Optional

from pyrag.embeddings.base import BaseEmbedding
from pyrag.llms.base import LLM
from pyrag.utils.config import RAGConfig
from pyrag.utils.logging import set_log_level

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024
DEFAULT_CHUNK_OVERLAP = 200


class _Settings:
    """
    Mutable defaults shared by every component.

    The LLM and embedding model are created on first read from the current
    config; OpenAI clients are only imported when a call is made. Components
    prefer explicitly passed models over these.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        """Restore the built-in defaults."""
        with self._lock:
            self._config = RAGConfig()
            self._llm: Optional[LLM] = None
            self._embed_model: Optional[BaseEmbedding] = None
            self._chunk_size = DEFAULT_CHUNK_SIZE
            self._chunk_overlap = DEFAULT_CHUNK_OVERLAP

    @property
    def llm(self) -> LLM:
        with self._lock:
            if self._llm is None:
                from pyrag.llms.openai import OpenAILLM

                self._llm = OpenAILLM(
                    model=self._config.llm_model,
                    api_key=self._config.api_key,
                    base_url=self._config.base_url,
                )
            return self._llm

    @llm.setter
    def llm(self, llm: LLM) -> None:
        with self._lock:
            self._llm = llm

    @property
    def embed_model(self) -> BaseEmbedding:
        with self._lock:
            if self._embed_model is None:
                from pyrag.embeddings.openai import OpenAIEmbedding

                self._embed_model = OpenAIEmbedding(
                    model=self._config.embed_model,
                    api_key=self._config.api_key,
                    base_url=self._config.base_url,
                )
            return self._embed_model

    @embed_model.setter
    def embed_model(self, embed_model: BaseEmbedding) -> None:
        with self._lock:
            self._embed_model = embed_model

    @property
    def chunk_size(self) -> int:
        with self._lock:
            return self._chunk_size

    @chunk_size.setter
    def chunk_size(self, chunk_size: int) -> None:
        with self._lock:
            self._chunk_size = chunk_size

    @property
    def chunk_overlap(self) -> int:
        with self._lock:
            return self._chunk_overlap

    @chunk_overlap.setter
    def chunk_overlap(self, chunk_overlap: int) -> None:
        with self._lock:
            self._chunk_overlap = chunk_overlap

    @property
    def similarity_top_k(self) -> int:
        with self._lock:
            return self._config.similarity_top_k

    def apply_config(self, config: RAGConfig) -> None:
        """
        Adopt a config: models are recreated lazily from it.

        Args:
            config: Library configuration
        """
        with self._lock:
            self._config = config
            self._llm = None
            self._embed_model = None
            self._chunk_size = config.chunk_size
            self._chunk_overlap = config.chunk_overlap
        set_log_level(config.log_level)
        logger.info(f"Applied config (llm={config.llm_model}, embed_model={config.embed_model})")


Settings = _Settings()

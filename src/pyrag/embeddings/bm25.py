"""BM25 sparse embedding model."""

import logging
import math
import re
import threading
from collections import Counter
from typing import Callable, Iterable, Optional

from pyrag.embeddings.sparse import SparseEmbedding

logger = logging.getLogger(__name__)

DEFAULT_BM25_STOPWORDS = frozenset([
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can", "need",
    "this", "that", "these", "those", "i", "you", "he", "she", "it",
    "we", "they", "what", "which", "who", "whom", "when", "where", "why",
    "how", "all", "each", "every", "both", "few", "more", "most", "other",
    "some", "such", "no", "nor", "not", "only", "own", "same", "so",
    "than", "too", "very", "just", "also", "now",
])

_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def default_tokenizer(text: str) -> list[str]:
    """Lowercase, turn punctuation into spaces and split on whitespace."""
    return _PUNCTUATION_RE.sub(" ", text.lower()).split()


class BM25:
    """BM25 ranking expressed as sparse embeddings.

    Document embeddings hold the per-term BM25 weight and query embeddings
    hold the IDF of each distinct query term, so their dot product is the
    BM25 score. A term present in every document carries no weight.
    """

    def __init__(
        self,
        k1: float = 1.5,
        b: float = 0.75,
        tokenizer: Optional[Callable[[str], list[str]]] = None,
        stopwords: Optional[Iterable[str]] = None,
    ):
        """Initialize the model.

        Args:
            k1: Term frequency saturation
            b: Document length normalization
            tokenizer: Text to tokens function
            stopwords: Tokens to ignore (defaults to a small English list)
        """
        self.k1 = k1
        self.b = b
        self.tokenizer = tokenizer or default_tokenizer
        self.stopwords = (
            frozenset(w.lower() for w in stopwords)
            if stopwords is not None else DEFAULT_BM25_STOPWORDS
        )

        self._lock = threading.RLock()
        self._vocabulary: dict[str, int] = {}
        self._doc_freqs: Counter = Counter()
        self._idf: dict[str, float] = {}
        self._num_docs = 0
        self._avg_doc_length = 0.0

    def tokenize(self, text: str) -> list[str]:
        return [t for t in self.tokenizer(text) if t not in self.stopwords]

    def fit(self, documents: list[str]) -> None:
        """Compute vocabulary, document frequencies and IDF over a corpus."""
        with self._lock:
            self._num_docs = len(documents)
            self._vocabulary = {}
            self._doc_freqs = Counter()
            self._idf = {}

            total_length = 0
            for doc in documents:
                tokens = self.tokenize(doc)
                total_length += len(tokens)
                for token in tokens:
                    if token not in self._vocabulary:
                        self._vocabulary[token] = len(self._vocabulary)
                self._doc_freqs.update(set(tokens))

            self._avg_doc_length = total_length / self._num_docs if self._num_docs else 0.0

            n = self._num_docs
            for term, df in self._doc_freqs.items():
                if df >= n:
                    self._idf[term] = 0.0
                else:
                    self._idf[term] = math.log((n - df + 0.5) / (df + 0.5) + 1)

        logger.debug(f"BM25 fitted on {self._num_docs} documents, vocabulary {len(self._vocabulary)}")

    def fit_transform(self, documents: list[str]) -> list[SparseEmbedding]:
        self.fit(documents)
        with self._lock:
            return [self._transform(doc) for doc in documents]

    def _term_weight(self, freq: int, doc_length: int) -> float:
        avg = self._avg_doc_length or 1.0
        numerator = freq * (self.k1 + 1)
        denominator = freq + self.k1 * (1 - self.b + self.b * (doc_length / avg))
        return numerator / denominator

    def _transform(self, text: str) -> SparseEmbedding:
        tokens = self.tokenize(text)
        doc_length = len(tokens)

        indices = []
        values = []
        for term, freq in Counter(tokens).items():
            idx = self._vocabulary.get(term)
            idf = self._idf.get(term, 0.0)
            if idx is None or idf == 0:
                continue
            score = idf * self._term_weight(freq, doc_length)
            if score > 0:
                indices.append(idx)
                values.append(score)

        return SparseEmbedding(indices=indices, values=values, dimension=len(self._vocabulary))

    def _transform_query(self, query: str) -> SparseEmbedding:
        indices = []
        values = []
        seen: set[str] = set()
        for token in self.tokenize(query):
            if token in seen:
                continue
            seen.add(token)

            idx = self._vocabulary.get(token)
            idf = self._idf.get(token, 0.0)
            if idx is not None and idf > 0:
                indices.append(idx)
                values.append(idf)

        return SparseEmbedding(indices=indices, values=values, dimension=len(self._vocabulary))

    async def get_sparse_embedding(self, text: str) -> SparseEmbedding:
        with self._lock:
            return self._transform(text)

    async def get_sparse_query_embedding(self, query: str) -> SparseEmbedding:
        with self._lock:
            return self._transform_query(query)

    async def get_sparse_embeddings_batch(self, texts: list[str]) -> list[SparseEmbedding]:
        with self._lock:
            return [self._transform(text) for text in texts]

    def score(self, query: str, document: str) -> float:
        """BM25 score of ``document`` for ``query``."""
        with self._lock:
            return self._transform_query(query).dot_product(self._transform(document))

    @property
    def vocabulary_size(self) -> int:
        return len(self._vocabulary)

    def get_term_idf(self, term: str) -> float:
        return self._idf.get(term.lower(), 0.0)


class BM25Plus(BM25):
    """BM25+ adds ``delta`` to each term's normalized frequency."""

    def __init__(self, delta: float = 1.0, **kwargs):
        super().__init__(**kwargs)
        self.delta = delta

    def _term_weight(self, freq: int, doc_length: int) -> float:
        return super()._term_weight(freq, doc_length) + self.delta

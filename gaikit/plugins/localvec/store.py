import hashlib
import json
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from gaikit.ai.retriever import (
    Embedder,
    Indexer,
    IndexerRequest,
    Retriever,
    RetrieverRequest,
    RetrieverResponse,
    define_indexer,
    define_retriever,
    embed,
    lookup_retriever,
)
from gaikit.ai.types import Document
from gaikit.core.errors import GaikitError
from gaikit.core.logger import logger

PROVIDER = "devLocalVectorStore"
DEFAULT_K = 3


@dataclass
class RetrieverOptions:
    k: int = DEFAULT_K

    @classmethod
    def from_value(cls, value: Any) -> 'RetrieverOptions':
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(k=int(value.get("k", DEFAULT_K)))
        raise GaikitError(f"localvec: unexpected retriever options {type(value).__name__}")


def _doc_key(document: Document) -> str:
    data = json.dumps(document.to_dict(), sort_keys=True, default=str)
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def cosine_similarity(a: List[float], b: List[float]) -> float:
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)


class DocStore:
    """A JSON file of documents and their embeddings, for development use."""

    def __init__(self, path: Path, embedder: Embedder, embedder_options: Any = None):
        self.path = path
        self.embedder = embedder
        self.embedder_options = embedder_options
        self.data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        if self.path.exists():
            with open(self.path, "r", encoding="utf-8") as f:
                self.data = json.load(f)
            logger.debug(f"Loaded {len(self.data)} documents from {self.path}")

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.data, f, default=str)

    def index(self, request: IndexerRequest) -> None:
        documents = request.documents
        if not documents:
            return
        embeddings = embed(self.embedder, documents, self.embedder_options)
        if len(embeddings) != len(documents):
            raise GaikitError(
                f"localvec: embedder returned {len(embeddings)} embeddings for {len(documents)} documents"
            )
        with self._lock:
            for document, embedding in zip(documents, embeddings):
                key = _doc_key(document)
                if key in self.data:
                    continue
                self.data[key] = {"doc": document.to_dict(), "embedding": list(embedding)}
            self._save()
        logger.info(f"Indexed {len(documents)} documents into {self.path.name}")

    def retrieve(self, request: RetrieverRequest) -> RetrieverResponse:
        options = RetrieverOptions.from_value(request.options)
        query = embed(self.embedder, [request.document], self.embedder_options)[0]

        with self._lock:
            entries = list(self.data.values())
        scored: List[Tuple[float, Dict[str, Any]]] = [
            (cosine_similarity(query, entry["embedding"]), entry) for entry in entries
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return RetrieverResponse(documents=[Document.from_dict(entry["doc"]) for _, entry in scored[:options.k]])


def define_indexer_and_retriever(
    name: str,
    embedder: Embedder,
    embedder_options: Any = None,
    directory: Optional[str] = None,
) -> Tuple[Indexer, Retriever]:
    """
    Define a local vector store indexer and retriever.

    Args:
        name: Store name; the data lives in {directory}/__db_{name}.json
        embedder: Embedder used for documents and queries
        embedder_options: Options passed to the embedder
        directory: Where to keep the store file (default: the temp directory)

    Returns:
        The indexer and the retriever
    """
    path = Path(directory or tempfile.gettempdir()) / f"__db_{name}.json"
    store = DocStore(path, embedder, embedder_options)
    indexer = define_indexer(PROVIDER, name, store.index)
    retriever = define_retriever(PROVIDER, name, store.retrieve)
    return indexer, retriever


def is_defined(name: str) -> bool:
    return lookup_retriever(PROVIDER, name) is not None

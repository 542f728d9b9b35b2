from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from gaikit.core.action import Action, ActionType, qualified_name
from gaikit.core.errors import GaikitError
from gaikit.core.registry import get_registry

from .types import Document, document_from_text


@dataclass
class IndexerRequest:
    documents: List[Document]
    options: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"documents": [d.to_dict() for d in self.documents], "options": self.options}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IndexerRequest':
        return cls(
            documents=[Document.from_dict(d) for d in data.get("documents", [])],
            options=data.get("options"),
        )


@dataclass
class RetrieverRequest:
    document: Document
    options: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"document": self.document.to_dict(), "options": self.options}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RetrieverRequest':
        return cls(document=Document.from_dict(data["document"]), options=data.get("options"))


@dataclass
class RetrieverResponse:
    documents: List[Document] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"documents": [d.to_dict() for d in self.documents]}


@dataclass
class EmbedRequest:
    documents: List[Document]
    options: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"documents": [d.to_dict() for d in self.documents], "options": self.options}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EmbedRequest':
        return cls(
            documents=[Document.from_dict(d) for d in data.get("documents", [])],
            options=data.get("options"),
        )


@dataclass
class Indexer:
    action: Action

    def index(self, documents: List[Document], options: Any = None) -> None:
        self.action.run(IndexerRequest(documents=list(documents), options=options))


@dataclass
class Retriever:
    action: Action

    def retrieve(self, request: RetrieverRequest) -> RetrieverResponse:
        return self.action.run(request)


@dataclass
class Embedder:
    action: Action

    def embed(self, request: EmbedRequest) -> List[List[float]]:
        return self.action.run(request)


def _define(action_type: ActionType, provider: str, name: str, fn: Callable, input_type: Any) -> Action:
    action = Action(
        name=qualified_name(provider, name),
        action_type=action_type,
        fn=lambda request, _cb: fn(request),
        input_type=input_type,
    )
    return get_registry().register_action(action)


def define_indexer(provider: str, name: str, fn: Callable[[IndexerRequest], None]) -> Indexer:
    return Indexer(_define(ActionType.INDEXER, provider, name, fn, IndexerRequest))


def define_retriever(
    provider: str, name: str, fn: Callable[[RetrieverRequest], RetrieverResponse]
) -> Retriever:
    return Retriever(_define(ActionType.RETRIEVER, provider, name, fn, RetrieverRequest))


def define_embedder(
    provider: str, name: str, fn: Callable[[EmbedRequest], List[List[float]]]
) -> Embedder:
    return Embedder(_define(ActionType.EMBEDDER, provider, name, fn, EmbedRequest))


def lookup_indexer(provider: str, name: str) -> Optional[Indexer]:
    action = get_registry().lookup(ActionType.INDEXER, qualified_name(provider, name))
    return Indexer(action) if action else None


def lookup_retriever(provider: str, name: str) -> Optional[Retriever]:
    action = get_registry().lookup(ActionType.RETRIEVER, qualified_name(provider, name))
    return Retriever(action) if action else None


def lookup_embedder(provider: str, name: str) -> Optional[Embedder]:
    action = get_registry().lookup(ActionType.EMBEDDER, qualified_name(provider, name))
    return Embedder(action) if action else None


def index(indexer: Indexer, documents: List[Document], options: Any = None) -> None:
    """Add documents to the indexer's store."""
    indexer.index(documents, options)


def retrieve(
    retriever: Retriever,
    *,
    text: Optional[str] = None,
    document: Optional[Document] = None,
    options: Any = None,
) -> RetrieverResponse:
    """Find the documents most relevant to a query text or document."""
    if document is None:
        if text is None:
            raise GaikitError("retrieve: need text or document")
        document = document_from_text(text)
    return retriever.retrieve(RetrieverRequest(document=document, options=options))


def embed(embedder: Embedder, documents: List[Document], options: Any = None) -> List[List[float]]:
    return embedder.embed(EmbedRequest(documents=list(documents), options=options))

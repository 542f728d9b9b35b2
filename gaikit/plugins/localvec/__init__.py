from .store import (
    PROVIDER,
    DocStore,
    RetrieverOptions,
    cosine_similarity,
    define_indexer_and_retriever,
    is_defined,
)

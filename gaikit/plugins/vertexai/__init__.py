from .plugin import EMBEDDERS, PROVIDER, VertexAI, define_model, embedder, init, is_defined_model, model

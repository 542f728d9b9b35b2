from .plugin import EMBEDDERS, PROVIDER, GoogleAI, define_model, embedder, init, is_defined_model, model

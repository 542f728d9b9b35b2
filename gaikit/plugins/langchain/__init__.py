from .evaluators import langchain_evaluator
from .model import GaikitLLM, genkit_model
from .tracing import GaikitTracer

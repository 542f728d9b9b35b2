from typing import Any, Dict, List, Optional
from uuid import UUID

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.outputs import LLMResult

from gaikit.core.tracing import SpanHandle, open_span


class GaikitTracer(BaseCallbackHandler):
    """Records LangChain chain and LLM runs as gaikit spans."""

    def __init__(self):
        super().__init__()
        self.spans: Dict[UUID, SpanHandle] = {}

    def _start(self, name: str, run_id: UUID, parent_run_id: Optional[UUID], inputs: Any) -> None:
        parent = self.spans.get(parent_run_id) if parent_run_id else None
        self.spans[run_id] = open_span(
            name,
            attributes={"genkit:type": "langchain"},
            inputs=inputs,
            parent=parent,
        )

    def _end(self, run_id: UUID, output: Any = None, error: Optional[BaseException] = None) -> None:
        span = self.spans.pop(run_id, None)
        if span is not None:
            span.end(output=output, error=error)

    @staticmethod
    def _name(serialized: Optional[Dict[str, Any]], default: str, **kwargs: Any) -> str:
        if kwargs.get("name"):
            return kwargs["name"]
        if serialized:
            if serialized.get("name"):
                return serialized["name"]
            if serialized.get("id"):
                return serialized["id"][-1]
        return default

    def on_chain_start(self, serialized, inputs, *, run_id, parent_run_id=None, **kwargs):
        self._start(self._name(serialized, "chain", **kwargs), run_id, parent_run_id, inputs)

    def on_chain_end(self, outputs, *, run_id, **kwargs):
        self._end(run_id, output=outputs)

    def on_chain_error(self, error, *, run_id, **kwargs):
        self._end(run_id, error=error)

    def on_llm_start(self, serialized, prompts: List[str], *, run_id, parent_run_id=None, **kwargs):
        self._start(self._name(serialized, "llm", **kwargs), run_id, parent_run_id, prompts)

    def on_llm_end(self, response: LLMResult, *, run_id, **kwargs):
        texts = [g.text for generations in response.generations for g in generations]
        self._end(run_id, output=texts)

    def on_llm_error(self, error, *, run_id, **kwargs):
        self._end(run_id, error=error)

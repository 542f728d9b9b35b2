from typing import Any, List, Optional

from langchain_core.callbacks import CallbackManagerForLLMRun
from langchain_core.language_models.llms import LLM
from pydantic import ConfigDict

from gaikit.ai.generate import generate
from gaikit.ai.model import Model


class GaikitLLM(LLM):
    """A LangChain LLM that sends prompts to a gaikit model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    gaikit_model: Any
    config: Any = None

    @property
    def _llm_type(self) -> str:
        return "gaikit"

    def _call(
        self,
        prompt: str,
        stop: Optional[List[str]] = None,
        run_manager: Optional[CallbackManagerForLLMRun] = None,
        **kwargs: Any,
    ) -> str:
        config = self.config
        if stop:
            config = dict(config.to_dict() if hasattr(config, "to_dict") else (config or {}))
            config["stopSequences"] = list(stop)
        response = generate(self.gaikit_model, prompt=prompt, config=config)
        return response.text()


def genkit_model(model: Model, config: Any = None) -> GaikitLLM:
    return GaikitLLM(gaikit_model=model, config=config)

from typing import Any

from langchain.evaluation import load_evaluator

from gaikit.ai.evaluator import BaseEvalDataPoint, EvalResponseItem, Evaluator, Score, define_evaluator
from gaikit.ai.model import Model
from gaikit.core.logger import logger

from .model import genkit_model
from .tracing import GaikitTracer

PROVIDER = "langchain"
SUPPORTED_TYPES = ("labeled_criteria", "criteria")


def langchain_evaluator(
    type: str,
    criteria: str,
    judge_llm: Model,
    judge_config: Any = None,
) -> Evaluator:
    """
    Define a LangChain criteria evaluator as langchain/{criteria}.

    Failures never abort an evaluation run: they are reported in the
    datapoint's evaluation error.
    """

    def score(datapoint: BaseEvalDataPoint) -> EvalResponseItem:
        try:
            if type not in SUPPORTED_TYPES:
                raise ValueError(f"unsupported evaluator type {type}")
            evaluator = load_evaluator(
                type,
                criteria=criteria,
                llm=genkit_model(judge_llm, judge_config),
            )
            lc_data = {
                "input": datapoint.input,
                "prediction": datapoint.output,
            }
            if datapoint.reference:
                lc_data["reference"] = datapoint.reference
            res = evaluator.evaluate_strings(**lc_data, callbacks=[GaikitTracer()])
            evaluation = Score(
                score=res.get("score"),
                details={"reasoning": res.get("reasoning"), "value": res.get("value")},
            )
        except Exception as e:
            logger.warning(f"langchain/{criteria} failed on {datapoint.test_case_id}: {e}")
            evaluation = Score(error=str(e))
        return EvalResponseItem(test_case_id=datapoint.test_case_id, evaluation=evaluation)

    return define_evaluator(
        PROVIDER,
        criteria,
        score,
        display_name=criteria,
        definition=f"{criteria}: refer to https://python.langchain.com/docs/guides/evaluation",
    )

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from gaikit.core.action import Action, ActionType, qualified_name
from gaikit.core.registry import get_registry
from gaikit.core.tracing import start_span


@dataclass
class BaseEvalDataPoint:
    input: Any = None
    output: Any = None
    context: Optional[List[Any]] = None
    reference: Any = None
    test_case_id: Optional[str] = None
    trace_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input": self.input,
            "output": self.output,
            "context": self.context,
            "reference": self.reference,
            "testCaseId": self.test_case_id,
            "traceIds": list(self.trace_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseEvalDataPoint':
        return cls(
            input=data.get("input"),
            output=data.get("output"),
            context=data.get("context"),
            reference=data.get("reference"),
            test_case_id=data.get("testCaseId"),
            trace_ids=list(data.get("traceIds", [])),
        )


@dataclass
class Score:
    score: Any = None
    details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in {
            "score": self.score,
            "details": self.details,
            "error": self.error,
        }.items() if v is not None}


@dataclass
class EvalResponseItem:
    test_case_id: str
    evaluation: Score

    def to_dict(self) -> Dict[str, Any]:
        return {"testCaseId": self.test_case_id, "evaluation": self.evaluation.to_dict()}


@dataclass
class EvalRequest:
    dataset: List[BaseEvalDataPoint]
    options: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"dataset": [d.to_dict() for d in self.dataset], "options": self.options}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvalRequest':
        return cls(
            dataset=[BaseEvalDataPoint.from_dict(d) for d in data.get("dataset", [])],
            options=data.get("options"),
        )


EvaluatorFn = Callable[[BaseEvalDataPoint], EvalResponseItem]


@dataclass
class Evaluator:
    action: Action

    def evaluate(self, dataset: List[BaseEvalDataPoint], options: Any = None) -> List[EvalResponseItem]:
        return self.action.run(EvalRequest(dataset=list(dataset), options=options))


def define_evaluator(
    provider: str,
    name: str,
    fn: EvaluatorFn,
    display_name: str = "",
    definition: str = "",
) -> Evaluator:
    """Register an evaluator that scores one datapoint per call."""

    def run(request: EvalRequest, _cb) -> List[EvalResponseItem]:
        results = []
        for datapoint in request.dataset:
            if not datapoint.test_case_id:
                datapoint.test_case_id = str(uuid.uuid4())
            with start_span(
                f"{name}/{datapoint.test_case_id}",
                attributes={"genkit:type": "evaluator"},
                inputs=datapoint,
            ) as span:
                item = fn(datapoint)
                span.set_output(item)
            results.append(item)
        return results

    action = Action(
        name=qualified_name(provider, name),
        action_type=ActionType.EVALUATOR,
        fn=run,
        description=definition,
        metadata={
            "evaluator": {
                "displayName": display_name or name,
                "definition": definition,
            }
        },
        input_type=EvalRequest,
    )
    get_registry().register_action(action)
    return Evaluator(action=action)


def lookup_evaluator(provider: str, name: str) -> Optional[Evaluator]:
    action = get_registry().lookup(ActionType.EVALUATOR, qualified_name(provider, name))
    return Evaluator(action) if action else None


def evaluate(
    evaluator: Evaluator,
    dataset: List[BaseEvalDataPoint],
    options: Any = None,
) -> List[EvalResponseItem]:
    return evaluator.evaluate(dataset, options)

from dataclasses import dataclass, field
from typing import Any, Dict, List

from gaikit.ai import Indexer, Model, Retriever, document_from_text, index, retrieve
from gaikit.ai.types import GenerationCommonConfig, OutputFormat
from gaikit.orchestration import define_flow
from gaikit.plugins import dotprompt
from gaikit.plugins.localvec import RetrieverOptions

RAG_MENU_TEMPLATE = """
You are acting as Walt, a helpful AI assistant here at the restaurant.
You can answer questions about the food on the menu or any other questions
customers have about food in general.

Here are some items that are on today's menu that are relevant to
helping you answer the customer's question:
{{#each menuData}}
- {{this.title}} ${{this.price}}
  {{this.description}}
{{/each}}

Answer this customer's question:
{{question}}?"""

DATA_MENU_QUESTION_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "menuData": {"type": "array", "items": {"type": "object"}},
        "question": {"type": "string"},
    },
    "required": ["question"],
}


@dataclass
class MenuItem:
    title: str
    price: float
    description: str


@dataclass
class MenuQuestionInput:
    question: str


@dataclass
class DataMenuQuestionInput:
    menu_data: List[Dict[str, Any]] = field(default_factory=list, metadata={"json": "menuData"})
    question: str = ""


def setup_menu_rag(indexer: Indexer, retriever: Retriever, model: Model) -> dotprompt.Prompt:
    """Define the menu indexing and question answering flows."""
    rag_prompt = dotprompt.define(
        "s04_ragDataMenu",
        RAG_MENU_TEMPLATE,
        dotprompt.Config(
            model=model,
            input_schema=DATA_MENU_QUESTION_INPUT_SCHEMA,
            output_format=OutputFormat.TEXT,
            generation_config=GenerationCommonConfig(temperature=0.3),
        ),
    )

    def index_menu_items(items: List[MenuItem]) -> Dict[str, int]:
        docs = [
            document_from_text(
                f"{m.title} {m.price:g} \n {m.description}",
                {"menuItem": {"title": m.title, "price": m.price, "description": m.description}},
            )
            for m in items
        ]
        index(indexer, docs)
        return {"rows": len(items)}

    define_flow("s04_indexMenuItems", index_menu_items)

    def rag_menu_question(input: MenuQuestionInput) -> Dict[str, str]:
        response = retrieve(retriever, text=input.question, options=RetrieverOptions(k=3))
        question_input = DataMenuQuestionInput(
            menu_data=[doc.metadata["menuItem"] for doc in response.documents],
            question=input.question,
        )
        answer = rag_prompt.generate(dotprompt.PromptRequest(variables=question_input))
        return {"answer": answer.text()}

    define_flow("s04_ragMenuQuestion", rag_menu_question)
    return rag_prompt

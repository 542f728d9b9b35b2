import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

from gaikit.orchestration import AuthContext, FlowAuth, current_auth_context, define_flow, define_streaming_flow, run


class SampleAuth(FlowAuth):
    """Treats the Authorization header as a username; only "authorized" passes."""

    def provide_auth_context(self, auth_header: Optional[str]) -> AuthContext:
        return {"username": auth_header}

    def check_auth_policy(self, auth_context: Optional[AuthContext], input: Any) -> None:
        if auth_context is None:
            raise ValueError("auth is required")
        if auth_context.get("username") != "authorized":
            raise ValueError("unauthorized")


@dataclass
class Complex:
    key: str = ""
    value: int = 0


@dataclass
class Chunk:
    count: int


def define_sample_flows():
    def basic(subject: str) -> str:
        foo = run("call-llm", lambda: "subject: " + subject)
        return run("call-llm", lambda: "foo: " + foo)

    basic_flow = define_flow("basic", basic)

    def with_context(subject: str) -> str:
        return f"subject={subject},auth={json.dumps(current_auth_context())}"

    define_flow("withContext", with_context, auth=SampleAuth())

    def parent(_: Any) -> str:
        return basic_flow.run("foo")

    define_flow("parent", parent)

    def complex_flow(c: Complex) -> str:
        return run("call-llm", lambda: f"{c.key}: {c.value}")

    define_flow("complex", complex_flow)

    def throwy(err: str) -> str:
        raise RuntimeError(err)

    define_flow("throwy", throwy)

    def streamy(count: int, callback: Optional[Callable[[Chunk], None]]) -> str:
        i = 0
        if callback is not None:
            for i in range(count):
                callback(Chunk(count=i))
            i = count
        return f"done: {count}, streamed: {i} times"

    define_streaming_flow("streamy", streamy)

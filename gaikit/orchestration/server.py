import json
import threading
import traceback
from typing import Any, Dict, Iterator, List, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from gaikit.core.config import get_env, get_flow_server_port, get_reflection_port, is_dev
from gaikit.core.errors import ActionNotFoundError, AuthError, SchemaValidationError
from gaikit.core.logger import logger
from gaikit.core.registry import get_registry
from gaikit.core.tracing import get_trace_store

from .flow import FLOW_KIND, Flow
from .streaming import iterate_callbacks


class RunActionRequest(BaseModel):
    key: str
    input: Any = None


class FlowRequest(BaseModel):
    data: Any = None


def _ndjson(obj: Any) -> str:
    return json.dumps(obj) + "\n"


def _error_body(e: Exception) -> Dict[str, Any]:
    return {
        "message": str(e),
        "details": {"stack": traceback.format_exc()},
    }


def create_reflection_app() -> FastAPI:
    """
    Build the dev-time reflection API used by developer tooling.

    Returns:
        FastAPI: App listing actions, running them and serving traces
    """
    app = FastAPI(
        title="Gaikit Reflection API",
        description="Inspect and run the registered actions",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/__health")
    def health():
        return {"status": "OK"}

    @app.get("/api/actions")
    def list_actions():
        return get_registry().list_actions()

    @app.post("/api/runAction")
    def run_action(body: RunActionRequest, stream: bool = False):
        try:
            action = get_registry().get_action(body.key)
        except ActionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

        logger.info(f"Running action {body.key}")
        if stream:
            def lines() -> Iterator[str]:
                events = iterate_callbacks(lambda cb: action.run_json(body.input, cb))
                try:
                    for event in events:
                        if event.done:
                            output, trace_id = event.result
                            yield _ndjson({"result": output, "telemetry": {"traceId": trace_id}})
                        else:
                            yield _ndjson(event.chunk)
                except Exception as e:
                    logger.error(f"Streaming action {body.key} failed: {e}")
                    yield _ndjson({"error": _error_body(e)})

            return StreamingResponse(lines(), media_type="application/x-ndjson")

        try:
            output, trace_id = action.run_json(body.input)
        except SchemaValidationError as e:
            return JSONResponse(status_code=400, content=_error_body(e))
        except Exception as e:
            logger.error(f"Action {body.key} failed: {e}")
            return JSONResponse(status_code=500, content=_error_body(e))
        return {"result": output, "telemetry": {"traceId": trace_id}}

    @app.get("/api/envs/{env}/traces")
    def list_traces(env: str, limit: Optional[int] = None):
        traces = get_trace_store().list(limit)
        return {"traces": [t.to_dict() for t in traces]}

    @app.get("/api/envs/{env}/traces/{trace_id}")
    def get_trace(env: str, trace_id: str):
        trace = get_trace_store().load(trace_id)
        if trace is None:
            raise HTTPException(status_code=404, detail=f"trace {trace_id} not found")
        return trace.to_dict()

    return app


def _flow_auth_context(flow: Flow, request: Request) -> Optional[Dict[str, Any]]:
    if flow.auth is None:
        return None
    try:
        return flow.auth.provide_auth_context(request.headers.get("Authorization"))
    except AuthError:
        raise
    except Exception as e:
        raise AuthError(str(e)) from e


def create_flow_app(flows: Optional[List[str]] = None) -> FastAPI:
    """Build the app serving every registered flow (or the named ones) at /{name}."""
    app = FastAPI(title="Gaikit Flows", version="1.0.0")

    def served(name: str) -> Optional[Flow]:
        if flows is not None and name not in flows:
            return None
        return get_registry().lookup_value(FLOW_KIND, name)

    @app.post("/{flow_name}")
    def run_flow(flow_name: str, body: FlowRequest, request: Request, stream: bool = False):
        flow = served(flow_name)
        if flow is None:
            raise HTTPException(status_code=404, detail=f"no flow named {flow_name!r}")

        try:
            auth_context = _flow_auth_context(flow, request)
        except AuthError as e:
            raise HTTPException(status_code=403, detail=str(e))

        if stream and flow.streaming:
            # The response status is sent before the first chunk.
            try:
                flow.check_json(body.data, auth_context=auth_context)
            except AuthError as e:
                raise HTTPException(status_code=403, detail=str(e))
            except SchemaValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))

            def lines() -> Iterator[str]:
                events = iterate_callbacks(
                    lambda cb: flow.run_json(body.data, cb, auth_context=auth_context)
                )
                try:
                    for event in events:
                        if event.done:
                            yield _ndjson({"result": event.result[0]})
                        else:
                            yield _ndjson({"message": event.chunk})
                except Exception as e:
                    logger.error(f"Streaming flow {flow_name} failed: {e}")
                    yield _ndjson({"error": str(e)})

            return StreamingResponse(lines(), media_type="application/x-ndjson")

        try:
            output, _ = flow.run_json(body.data, auth_context=auth_context)
        except AuthError as e:
            raise HTTPException(status_code=403, detail=str(e))
        except SchemaValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.error(f"Flow {flow_name} failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return {"result": output}

    return app


def _serve_in_background(app: FastAPI, port: int) -> threading.Thread:
    server = uvicorn.Server(uvicorn.Config(app, host="127.0.0.1", port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, daemon=True, name="gaikit-reflection")
    thread.start()
    return thread


def init(flows: Optional[List[str]] = None) -> None:
    """
    Start the servers and block serving flows.

    In the dev environment the reflection API also starts in a background
    thread. No actions can be registered afterwards.
    """
    load_dotenv()
    registry = get_registry()
    registry.freeze()

    if is_dev():
        port = get_reflection_port()
        logger.info(f"Starting reflection server on port {port} (env: {get_env()})")
        _serve_in_background(create_reflection_app(), port)

    port = get_flow_server_port()
    logger.info(f"Serving flows on port {port}")
    uvicorn.run(create_flow_app(flows), host="0.0.0.0", port=port)

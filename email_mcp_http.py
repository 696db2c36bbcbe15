"""
email_mcp_http.py
-----------------
HTTP JSON-RPC front for the same tools, for container deployments where a
stdio process is not an option.

Start:
    postmark-mcp-http              (MCP_HTTP_HOST / MCP_HTTP_PORT, default 0.0.0.0:8004)

Endpoints:
    GET  /   → health check
    POST /   → MCP JSON-RPC 2.0 (initialize, tools/list, tools/call)
"""

import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from email_config import configure_logging
from email_errors import UnknownToolError
from email_lifecycle import bootstrap
from tool_dispatch import ToolDispatcher

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {"name": "postmark-mcp", "version": "1.0.0"}

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601


def _result(request_id: Any, result: dict) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "id": request_id, "result": result})


def _error(request_id: Any, code: int, message: str) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}})


def create_app(dispatcher: Optional[ToolDispatcher] = None) -> FastAPI:
    """Build the app. Without a dispatcher, the full startup sequence runs in the lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        if dispatcher is None:
            client, app.state.dispatcher = await bootstrap()
        else:
            app.state.dispatcher = dispatcher
        try:
            yield
        finally:
            if client is not None:
                await client.aclose()
                logger.info("Server shutdown complete. Bye!")

    app = FastAPI(title="Postmark MCP Server", lifespan=lifespan)

    # -------------------------------------------------------
    # Health check
    # -------------------------------------------------------
    @app.get("/")
    async def health():
        return {"status": "ok", "service": SERVER_INFO["name"]}

    # -------------------------------------------------------
    # MCP JSON-RPC 2.0 handler
    # -------------------------------------------------------
    @app.post("/")
    async def mcp_handler(request: Request):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return _error(None, PARSE_ERROR, "Parse error")
        if not isinstance(body, dict):
            return _error(None, INVALID_REQUEST, "Invalid request")

        method = body.get("method", "")
        params = body.get("params") or {}
        request_id = body.get("id")
        tools: ToolDispatcher = request.app.state.dispatcher

        # --- notifications (no id) → never respond ---
        if request_id is None:
            return Response(status_code=204)

        if method == "initialize":
            return _result(request_id, {
                "protocolVersion": PROTOCOL_VERSION,
                "serverInfo": SERVER_INFO,
                "capabilities": {"tools": {}},
            })

        elif method == "tools/list":
            return _result(request_id, {"tools": [
                {"name": t.name, "description": t.description, "inputSchema": t.input_schema}
                for t in tools.tools
            ]})

        elif method == "tools/call":
            tool_name = params.get("name")
            try:
                result = await tools.execute(tool_name, params.get("arguments") or {})
            except UnknownToolError:
                return _error(request_id, METHOD_NOT_FOUND, f"Tool not found: {tool_name}")
            return _result(request_id, result.to_dict())

        return _error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    return app


app = create_app()


def run() -> None:
    load_dotenv()
    configure_logging()
    uvicorn.run(
        app,
        host=os.getenv("MCP_HTTP_HOST", "0.0.0.0"),
        port=int(os.getenv("MCP_HTTP_PORT", "8004")),
    )


if __name__ == "__main__":
    run()

"""
email_mcp_server.py
-------------------
Local stdio MCP server exposing the Postmark email tools:
sendEmail, sendEmailWithTemplate, listTemplates, getDeliveryStats.

Register it with an MCP client as a stdio server, e.g.

    "postmark": {"command": "postmark-mcp", "env": {"POSTMARK_SERVER_TOKEN": "..."}}

POSTMARK_SERVER_TOKEN, DEFAULT_SENDER_EMAIL and DEFAULT_MESSAGE_STREAM must be
set (environment or .env); the process exits with code 1 otherwise.
"""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv
from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from email_config import configure_logging
from email_errors import EmailMcpError
from email_lifecycle import Lifecycle, bootstrap
from tool_dispatch import ToolDispatcher

logger = logging.getLogger(__name__)

SERVER_NAME = "postmark-mcp"


def build_server(dispatcher: ToolDispatcher) -> Server:
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in dispatcher.tools
        ]

    # arguments are validated by the dispatcher's own models
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict) -> types.CallToolResult:
        result = await dispatcher.execute(name, arguments)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=block.text) for block in result.content],
            isError=result.is_error,
        )

    return server


async def serve_stdio(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        logger.info("Postmark MCP server is running and ready!")
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
            raise_exceptions=True,
        )


async def main() -> int:
    load_dotenv()
    configure_logging()

    try:
        client, dispatcher = await bootstrap()
    except EmailMcpError as e:
        logger.error(f"Server initialization failed: {e}")
        return 1

    lifecycle = Lifecycle(client)
    lifecycle.install(asyncio.get_running_loop())

    logger.info("Connecting to MCP transport..")
    return await lifecycle.run(serve_stdio(build_server(dispatcher)))


def run() -> None:
    # asyncio.run would join the stdin reader thread on the way out, and that
    # thread stays blocked for as long as the client keeps stdin open
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    exit_code = loop.run_until_complete(main())
    sys.stdout.flush()
    logging.shutdown()
    os._exit(exit_code)


if __name__ == "__main__":
    run()

"""
email_lifecycle.py
------------------
Process lifecycle shared by the stdio and HTTP entry points.

Startup (bootstrap), strictly in order, each step fatal:
    1. read the three required configuration values
    2. build the Postmark client and make one liveness call
    3. build the dispatcher, which registers every tool

Shutdown: RUNNING -> SHUTTING_DOWN -> EXITED. Only the first shutdown
request acts, so repeated SIGINT/SIGTERM are harmless. Errors escaping the
serving task, or reported to the event loop's exception handler, end the
process with exit code 1.
"""

import asyncio
import logging
import signal
from enum import Enum
from typing import Any, Awaitable, Dict, Mapping, Optional, Tuple

import httpx

from email_config import load_credentials
from email_errors import ProviderError
from postmark_client import PostmarkClient
from tool_dispatch import ToolDispatcher

logger = logging.getLogger(__name__)


async def bootstrap(
    environ: Optional[Mapping[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[PostmarkClient, ToolDispatcher]:
    credentials = load_credentials(environ)

    logger.info("Initializing Postmark MCP server..")
    logger.info(f"Default sender: {credentials.default_sender}")
    logger.info(f"Message stream: {credentials.default_message_stream}")

    client = PostmarkClient(credentials, transport=transport)
    try:
        server = await client.get_server()
    except ProviderError:
        await client.aclose()
        raise
    logger.info(f"Postmark server verified: {server.get('Name', 'unknown')}")

    dispatcher = ToolDispatcher(client, credentials)
    logger.info(f"Available tools: {', '.join(t.name for t in dispatcher.tools)}")
    return client, dispatcher


class State(str, Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    EXITED = "exited"


class Lifecycle:
    """Owns the serving task and the Postmark client until process exit."""

    # how long a cancelled serving task may take to unwind before it is abandoned
    drain_timeout = 0.5

    def __init__(self, client: PostmarkClient):
        self.state = State.RUNNING
        self.exit_code = 0
        self._client = client
        self._task: Optional[asyncio.Future] = None
        self._stopping: Optional[asyncio.Event] = None

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_shutdown)
        loop.set_exception_handler(self._on_unhandled_error)

    def request_shutdown(self, exit_code: int = 0) -> bool:
        """Stop serving. Returns False if a shutdown is already under way."""
        if self.state is not State.RUNNING:
            return False
        logger.info("Shutting down server..")
        self.state = State.SHUTTING_DOWN
        self.exit_code = exit_code
        if self._stopping is not None:
            self._stopping.set()
        if self._task is not None:
            self._task.cancel()
        return True

    def _on_unhandled_error(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        error = context.get("exception") or context.get("message")
        logger.error(f"Unhandled asynchronous error: {error}")
        if not self.request_shutdown(exit_code=1):
            self.exit_code = 1

    async def run(self, serve: Awaitable[None]) -> int:
        """Serve until the transport ends or shutdown is requested; returns the exit code.

        A shutdown request does not wait for the serving task: the stdio
        transport reads stdin on a thread that cancellation cannot interrupt.
        """
        self._stopping = asyncio.Event()
        self._task = asyncio.ensure_future(serve)
        stopping = asyncio.ensure_future(self._stopping.wait())
        try:
            await asyncio.wait({self._task, stopping}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._task.cancel()
            raise
        finally:
            stopping.cancel()

        if self._task.done():
            self._settle()
        exit_code = await self._close()
        await self._drain()
        return exit_code

    def _settle(self) -> None:
        if self._task.cancelled():
            if self.state is State.RUNNING:
                raise asyncio.CancelledError()
            return
        error = self._task.exception()
        if error is not None:
            logger.error("Uncaught exception while serving", exc_info=error)
            self.request_shutdown(exit_code=1)
        else:
            logger.info("Transport closed")
            self.request_shutdown()

    async def _drain(self) -> None:
        if self._task.done():
            return
        done, _ = await asyncio.wait({self._task}, timeout=self.drain_timeout)
        if not done:
            logger.warning("Serving task did not stop; abandoning it")
        elif not self._task.cancelled() and self._task.exception() is not None:
            logger.debug(f"Serving task ended with {self._task.exception()!r} after shutdown")

    async def _close(self) -> int:
        try:
            await self._client.aclose()
        except Exception as e:
            logger.error(f"[ERROR] Shutdown: {e}")
            self.exit_code = 1
        self.state = State.EXITED
        if self.exit_code == 0:
            logger.info("Server shutdown complete. Bye!")
        return self.exit_code

"""
postmark_client.py
------------------
The slice of the Postmark server API this MCP server needs.

One httpx.AsyncClient per process, authenticated with the server token
header. Every call is a single attempt; any non-2xx response or transport
failure raises ProviderError. Outbound sends always track opens and links
and always go to the configured message stream.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from email_attachments import EncodedAttachment
from email_config import ProviderCredentials
from email_errors import ProviderError

logger = logging.getLogger(__name__)

TRACK_LINKS = "HtmlAndText"
TEMPLATES_PAGE_SIZE = 100


@dataclass(frozen=True)
class OutboundMessage:
    sender: str
    to: str
    subject: str
    text_body: str
    html_body: Optional[str] = None
    tag: Optional[str] = None
    attachments: Sequence[EncodedAttachment] = ()


@dataclass(frozen=True)
class TemplatedMessage:
    sender: str
    to: str
    template_model: Dict[str, Any] = field(default_factory=dict)
    template_id: Optional[int] = None
    template_alias: Optional[str] = None
    tag: Optional[str] = None


@dataclass(frozen=True)
class Template:
    name: str
    id: int
    alias: Optional[str] = None
    subject: Optional[str] = None


@dataclass(frozen=True)
class DeliveryStats:
    sent: int = 0
    tracked: int = 0
    unique_opens: int = 0
    total_tracked_links_sent: int = 0
    unique_links_clicked: int = 0


class PostmarkClient:
    """Async facade over the Postmark REST API."""

    def __init__(self, credentials: ProviderCredentials, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._message_stream = credentials.default_message_stream
        self._http = httpx.AsyncClient(
            base_url=credentials.api_url,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "X-Postmark-Server-Token": credentials.server_token,
            },
            timeout=credentials.timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(f"{method} {path} failed: {e.__class__.__name__}: {e}") from e

    async def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Request that parses Postmark's {ErrorCode, Message} error body."""
        response = await self._request(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.is_success:
            message = body.get("Message") if isinstance(body, dict) else None
            raise ProviderError(
                message or response.reason_phrase,
                status_code=response.status_code,
                error_code=body.get("ErrorCode") if isinstance(body, dict) else None,
            )
        return body

    def _tracking(self) -> Dict[str, Any]:
        return {
            "MessageStream": self._message_stream,
            "TrackOpens": True,
            "TrackLinks": TRACK_LINKS,
        }

    async def get_server(self) -> Dict[str, Any]:
        """Liveness call used at startup to confirm the token is accepted."""
        return await self._call("GET", "/server")

    async def send_message(self, message: OutboundMessage) -> str:
        payload = {
            "From": message.sender,
            "To": message.to,
            "Subject": message.subject,
            "TextBody": message.text_body,
            **self._tracking(),
        }
        if message.html_body:
            payload["HtmlBody"] = message.html_body
        if message.tag:
            payload["Tag"] = message.tag
        if message.attachments:
            payload["Attachments"] = [a.to_postmark() for a in message.attachments]

        result = await self._call("POST", "/email", json=payload)
        return result["MessageID"]

    async def send_templated_message(self, message: TemplatedMessage) -> str:
        payload = {
            "From": message.sender,
            "To": message.to,
            "TemplateModel": message.template_model,
            **self._tracking(),
        }
        if message.template_id is not None:
            payload["TemplateId"] = message.template_id
        else:
            payload["TemplateAlias"] = message.template_alias
        if message.tag:
            payload["Tag"] = message.tag

        result = await self._call("POST", "/email/withTemplate", json=payload)
        return result["MessageID"]

    async def list_templates(self) -> List[Template]:
        """All templates on the server, in Postmark's order, paging through the listing."""
        templates: List[Template] = []
        offset = 0
        while True:
            page = await self._call(
                "GET", "/templates", params={"count": TEMPLATES_PAGE_SIZE, "offset": offset}
            )
            items = page.get("Templates") or []
            templates.extend(
                Template(
                    name=t.get("Name", ""),
                    id=t.get("TemplateId"),
                    alias=t.get("Alias") or None,
                    subject=t.get("Subject") or None,
                )
                for t in items
            )
            offset += len(items)
            if not items or offset >= page.get("TotalCount", 0):
                return templates

    async def fetch_stats(
        self,
        tag: Optional[str] = None,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
    ) -> DeliveryStats:
        params = {
            name: value
            for name, value in (("fromdate", from_date), ("todate", to_date), ("tag", tag))
            if value
        }
        response = await self._request("GET", "/stats/outbound", params=params)
        if not response.is_success:
            raise ProviderError(
                f"API request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Unreadable stats response: {e}", status_code=response.status_code) from e
        return DeliveryStats(
            sent=data.get("Sent") or 0,
            tracked=data.get("Tracked") or 0,
            unique_opens=data.get("UniqueOpens") or 0,
            total_tracked_links_sent=data.get("TotalTrackedLinksSent") or 0,
            unique_links_clicked=data.get("UniqueLinksClicked") or 0,
        )

"""
tool_dispatch.py
----------------
Tool registry and dispatcher: tool name -> {argument model, handler}.

The tool set is fixed when the dispatcher is built. `execute` validates the
raw arguments, runs the handler against Postmark and formats a text result.
Every failure past the tool lookup comes back as an error ToolResult; only an
unknown tool name raises, so transports can answer it as a malformed call.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from email_attachments import resolve_attachments
from email_config import ProviderCredentials
from email_errors import EmailMcpError, UnknownToolError
from email_schemas import (
    DeliveryStatsArgs,
    ListTemplatesArgs,
    SendEmailArgs,
    SendEmailWithTemplateArgs,
    ToolArguments,
    input_schema,
    validate_arguments,
)
from postmark_client import OutboundMessage, PostmarkClient, TemplatedMessage

logger = logging.getLogger(__name__)


# ── Results ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TextBlock:
    text: str
    type: str = "text"


@dataclass(frozen=True)
class ToolResult:
    content: Tuple[TextBlock, ...]
    is_error: bool = False

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=(TextBlock(text),))

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(content=(TextBlock(f"Error: {message}"),), is_error=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": [{"type": block.type, "text": block.text} for block in self.content],
            "isError": self.is_error,
        }


Handler = Callable[[Any], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    arguments: Type[ToolArguments]
    handler: Handler

    @property
    def input_schema(self) -> Dict[str, Any]:
        return input_schema(self.arguments)


def rate(numerator: int, denominator: int) -> str:
    """Percentage with one decimal, exact ties rounded up; a zero denominator gives "0.0"."""
    if denominator <= 0:
        return "0.0"
    percent = Decimal(numerator / denominator * 100)
    return str(percent.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


# ── Dispatcher ────────────────────────────────────────────────────────────────

class ToolDispatcher:
    """Routes tool calls to handlers bound to one Postmark account."""

    def __init__(self, client: PostmarkClient, credentials: ProviderCredentials):
        self._client = client
        self._credentials = credentials
        self._tools: Dict[str, ToolDefinition] = {}

        self._register(ToolDefinition(
            name=SendEmailArgs.tool_name,
            description="Send an email via Postmark, optionally with file attachments.",
            arguments=SendEmailArgs,
            handler=self.send_email,
        ))
        self._register(ToolDefinition(
            name=SendEmailWithTemplateArgs.tool_name,
            description="Send an email using a Postmark template (by templateId or templateAlias).",
            arguments=SendEmailWithTemplateArgs,
            handler=self.send_email_with_template,
        ))
        self._register(ToolDefinition(
            name=ListTemplatesArgs.tool_name,
            description="List all email templates on the Postmark server.",
            arguments=ListTemplatesArgs,
            handler=self.list_templates,
        ))
        self._register(ToolDefinition(
            name=DeliveryStatsArgs.tool_name,
            description="Get outbound delivery statistics (sent, open rate, click rate).",
            arguments=DeliveryStatsArgs,
            handler=self.get_delivery_stats,
        ))

    def _register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    @property
    def tools(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def get(self, tool_name: str) -> Optional[ToolDefinition]:
        return self._tools.get(tool_name)

    async def execute(self, tool_name: str, arguments: Optional[Dict[str, Any]]) -> ToolResult:
        tool = self._tools.get(tool_name)
        if tool is None:
            raise UnknownToolError(tool_name)

        try:
            args = validate_arguments(tool.arguments, arguments)
            return await tool.handler(args)
        except EmailMcpError as e:
            logger.warning(f"{tool_name} failed: {e}")
            return ToolResult.error(str(e))
        except Exception as e:
            logger.exception(f"{tool_name} raised an unexpected error")
            return ToolResult.error(f"Unexpected error: {e}")

    # ── Handlers ──────────────────────────────────────────────────────────────

    async def send_email(self, args: SendEmailArgs) -> ToolResult:
        attachments = await resolve_attachments(args.attachments)

        logger.info(f"Sending email to {args.to} | subject={args.subject!r}")
        message_id = await self._client.send_message(OutboundMessage(
            sender=args.sender or self._credentials.default_sender,
            to=args.to,
            subject=args.subject,
            text_body=args.text_body,
            html_body=args.html_body,
            tag=args.tag,
            attachments=attachments,
        ))
        logger.info(f"Email sent: {message_id}")

        lines = [
            "Email sent successfully!",
            f"MessageID: {message_id}",
            f"To: {args.to}",
            f"Subject: {args.subject}",
        ]
        if attachments:
            lines.append(f"Attachments: {', '.join(a.name for a in attachments)}")
        return ToolResult.text("\n".join(lines))

    async def send_email_with_template(self, args: SendEmailWithTemplateArgs) -> ToolResult:
        logger.info(f"Sending template email to {args.to} | template={args.template_reference}")
        message_id = await self._client.send_templated_message(TemplatedMessage(
            sender=args.sender or self._credentials.default_sender,
            to=args.to,
            template_model=args.template_model,
            template_id=args.template_id,
            template_alias=args.template_alias,
            tag=args.tag,
        ))
        logger.info(f"Template email sent: {message_id}")

        return ToolResult.text(
            "Template email sent successfully!\n"
            f"MessageID: {message_id}\n"
            f"To: {args.to}\n"
            f"Template: {args.template_reference}"
        )

    async def list_templates(self, args: ListTemplatesArgs) -> ToolResult:
        templates = await self._client.list_templates()
        logger.info(f"Found {len(templates)} templates")

        blocks = [
            f"• {t.name}\n"
            f"  - ID: {t.id}\n"
            f"  - Alias: {t.alias or 'none'}\n"
            f"  - Subject: {t.subject or 'none'}"
            for t in templates
        ]
        return ToolResult.text(f"Found {len(templates)} templates:\n\n" + "\n\n".join(blocks))

    async def get_delivery_stats(self, args: DeliveryStatsArgs) -> ToolResult:
        stats = await self._client.fetch_stats(tag=args.tag, from_date=args.from_date, to_date=args.to_date)
        open_rate = rate(stats.unique_opens, stats.tracked)
        click_rate = rate(stats.unique_links_clicked, stats.total_tracked_links_sent)

        text = (
            "Email Statistics Summary\n\n"
            f"Sent: {stats.sent} emails\n"
            f"Open Rate: {open_rate}% ({stats.unique_opens}/{stats.tracked} tracked emails)\n"
            f"Click Rate: {click_rate}% "
            f"({stats.unique_links_clicked}/{stats.total_tracked_links_sent} tracked links)\n\n"
        )
        if args.from_date or args.to_date:
            text += f"Period: {args.from_date or 'start'} to {args.to_date or 'now'}\n"
        if args.tag:
            text += f"Tag: {args.tag}\n"
        return ToolResult.text(text)

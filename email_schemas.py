"""
email_schemas.py
----------------
Input contracts for every tool, as pydantic models.

Each tool name maps to exactly one model; `validate_arguments` turns the raw
argument dict of a tool call into an instance of that model, or raises
ValidationError / InvalidArgument before anything touches the network.
Unknown extra fields are ignored.
"""

from typing import Annotated, Any, ClassVar, Dict, List, Optional, Type

import pydantic
from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, WithJsonSchema, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from email_errors import InvalidArgument, ValidationError

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

SEND_EMAIL = "sendEmail"
SEND_EMAIL_WITH_TEMPLATE = "sendEmailWithTemplate"
LIST_TEMPLATES = "listTemplates"
GET_DELIVERY_STATS = "getDeliveryStats"

_INVALID_ARGUMENT = "invalid_argument"


def _check_address(value: str) -> str:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise PydanticCustomError(
            "value_error", "value is not a valid email address: {reason}", {"reason": str(e)}
        )
    return value


# Checked like pydantic.EmailStr but kept exactly as the caller wrote it
EmailAddress = Annotated[
    str,
    AfterValidator(_check_address),
    WithJsonSchema({"type": "string", "format": "email"}),
]


class WireModel(BaseModel):
    """Immutable record, camelCase on the wire, extra fields ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class ToolArguments(WireModel):
    tool_name: ClassVar[str]


class AttachmentRequest(WireModel):
    file_path: str = Field(min_length=1, description="Absolute path to the file to attach")
    file_name: Optional[str] = Field(
        default=None, description="Override filename (defaults to basename of filePath)"
    )


class SendEmailArgs(ToolArguments):
    tool_name: ClassVar[str] = SEND_EMAIL

    to: EmailAddress = Field(description="Recipient email address")
    subject: str = Field(description="Email subject")
    text_body: str = Field(description="Plain text body of the email")
    html_body: Optional[str] = Field(default=None, description="HTML body of the email (optional)")
    sender: Optional[EmailAddress] = Field(
        default=None,
        alias="from",
        description="Sender email address (optional, uses default if not provided)",
    )
    tag: Optional[str] = Field(default=None, description="Optional tag for categorization")
    attachments: List[AttachmentRequest] = Field(
        default_factory=list,
        description="Files to attach (reads from disk and base64-encodes)",
    )


def _given(data: Dict[str, Any], *keys: str) -> bool:
    return any(data.get(key) is not None for key in keys)


class SendEmailWithTemplateArgs(ToolArguments):
    tool_name: ClassVar[str] = SEND_EMAIL_WITH_TEMPLATE

    to: EmailAddress = Field(description="Recipient email address")
    template_id: Optional[int] = Field(
        default=None, description="Template ID (use either this or templateAlias)"
    )
    template_alias: Optional[str] = Field(
        default=None, min_length=1, description="Template alias (use either this or templateId)"
    )
    template_model: Dict[str, Any] = Field(description="Data model for template variables")
    sender: Optional[EmailAddress] = Field(
        default=None, alias="from", description="Sender email address (optional)"
    )
    tag: Optional[str] = Field(default=None, description="Optional tag for categorization")

    @model_validator(mode="before")
    @classmethod
    def _one_template_reference(cls, data: Any) -> Any:
        # decided on the raw input, so an empty alias still counts as given
        if not isinstance(data, dict):
            return data
        has_id = _given(data, "templateId", "template_id")
        has_alias = _given(data, "templateAlias", "template_alias")
        if has_id == has_alias:
            raise PydanticCustomError(
                _INVALID_ARGUMENT,
                "Exactly one of templateId or templateAlias must be provided",
            )
        return data

    @property
    def template_reference(self) -> str:
        return str(self.template_id) if self.template_id is not None else self.template_alias


class ListTemplatesArgs(ToolArguments):
    tool_name: ClassVar[str] = LIST_TEMPLATES


class DeliveryStatsArgs(ToolArguments):
    tool_name: ClassVar[str] = GET_DELIVERY_STATS

    tag: Optional[str] = Field(default=None, description="Filter by tag (optional)")
    from_date: Optional[str] = Field(
        default=None, pattern=DATE_PATTERN, description="Start date in YYYY-MM-DD format (optional)"
    )
    to_date: Optional[str] = Field(
        default=None, pattern=DATE_PATTERN, description="End date in YYYY-MM-DD format (optional)"
    )


ARGUMENT_MODELS: Dict[str, Type[ToolArguments]] = {
    model.tool_name: model
    for model in (SendEmailArgs, SendEmailWithTemplateArgs, ListTemplatesArgs, DeliveryStatsArgs)
}


def input_schema(model: Type[ToolArguments]) -> Dict[str, Any]:
    """JSON Schema advertised to MCP clients for a tool."""
    schema = model.model_json_schema(by_alias=True)
    schema.setdefault("properties", {})
    return schema


def _describe(error: Dict[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    return f"{loc}: {error['msg']}" if loc else error["msg"]


def validate_arguments(model: Type[ToolArguments], arguments: Optional[Dict[str, Any]]) -> ToolArguments:
    """Validate raw call arguments against a tool model. Reports the first failing field."""
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ValidationError(model.tool_name, "arguments must be an object")

    try:
        return model.model_validate(arguments)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        if first["type"] == _INVALID_ARGUMENT:
            raise InvalidArgument(model.tool_name, first["msg"]) from None
        raise ValidationError(model.tool_name, _describe(first)) from None

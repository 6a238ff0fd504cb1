"""Pydantic models shared by the dispatcher, the batch processor and the API.

Field names on the wire follow the relay's JSON contract (``to_email``,
``message``, ``messageId``); the Python attribute names describe what the
values are.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

MISSING_INDEX = -1
TEXT_FIELDS = ("to_email", "subject", "message")

_index_adapter = TypeAdapter(int)


def _coerce_index(value: Any) -> Optional[int]:
    """Return ``value`` as an ordinal, or ``None`` when it is not an integer."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return _index_adapter.validate_python(value)
    except ValidationError:
        return None


class MessageRequest(BaseModel):
    """One message the caller wants relayed.

    Required fields are validated by the code that consumes the request, so
    an incomplete item can still be reported with its ``index``.
    """

    model_config = ConfigDict(frozen=True)

    recipient: Optional[str] = Field(default=None, alias="to_email")
    subject: Optional[str] = None
    body: Optional[str] = Field(default=None, alias="message")
    index: Optional[int] = None

    @property
    def ordinal(self) -> int:
        """Caller supplied ordinal, ``-1`` when absent."""
        return MISSING_INDEX if self.index is None else self.index

    @property
    def is_complete(self) -> bool:
        """``True`` when recipient, subject and body are all non-empty."""
        return bool(self.recipient) and bool(self.subject) and bool(self.body)

    @classmethod
    def from_item(cls, item: Any) -> Optional["MessageRequest"]:
        """Coerce one raw batch entry, returning ``None`` when it is not an object.

        Fields are read one by one: a wrong-typed text field counts as missing
        and an invalid ``index`` as absent, without discarding the others.
        """
        if isinstance(item, MessageRequest):
            return item
        if not isinstance(item, dict):
            return None
        fields = {name: item.get(name) if isinstance(item.get(name), str) else None for name in TEXT_FIELDS}
        return cls.model_validate({**fields, "index": _coerce_index(item.get("index"))})


class SendResult(BaseModel):
    """Outcome of a single message inside a batch."""

    model_config = ConfigDict(populate_by_name=True)

    index: Optional[int] = None
    to_email: Optional[str] = None
    success: bool
    message: str
    message_id: Optional[str] = Field(default=None, alias="messageId")


class BatchOutcome(BaseModel):
    """Result of a whole batch; ``success`` only means the loop completed."""

    success: bool = True
    message: str
    results: List[SendResult] = Field(default_factory=list)


class StatusResponse(BaseModel):
    """Envelope shared by every JSON response."""

    success: bool
    message: str


class HealthResponse(StatusResponse):
    model_config = ConfigDict(populate_by_name=True)

    email_configured: bool = Field(alias="emailConfigured")


class SendEmailResponse(StatusResponse):
    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[str] = Field(default=None, alias="messageId")


class SendEmailPayload(BaseModel):
    """Body accepted by ``POST /api/send-email``."""

    to_email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None

    def to_request(self) -> MessageRequest:
        return MessageRequest(to_email=self.to_email, subject=self.subject, message=self.message)


class BatchPayload(BaseModel):
    """Body accepted by the batch endpoints.

    ``emails`` is left untyped so one malformed entry is reported per item
    instead of rejecting the whole request.
    """

    emails: Optional[Any] = None

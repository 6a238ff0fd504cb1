"""Sequential batch processing with per-item isolation and send pacing.

Items are handled strictly in input order, one at a time. Every item yields
exactly one :class:`SendResult`; a malformed item becomes a failed result
instead of being dropped, and a failed send never stops the loop. After each
attempted send the processor sleeps for ``delay`` seconds so the provider
sees a bounded outbound rate, whatever the inbound rate limiter allows.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Sequence

from .dispatcher import MailDispatcher
from .logger import get_logger
from .models import MISSING_INDEX, BatchOutcome, MessageRequest, SendResult

MISSING_FIELDS_MESSAGE = "Missing required fields"
SENT_MESSAGE = "Email sent successfully"
FAILED_PREFIX = "Failed to send email: "
BATCH_COMPLETED_MESSAGE = "Batch email processing completed"


class BatchProcessor:
    """Drive a :class:`MailDispatcher` over an ordered list of message requests."""

    def __init__(
        self,
        dispatcher: MailDispatcher,
        delay: float = 0.5,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger=None,
    ):
        self.dispatcher = dispatcher
        self.delay = max(0.0, float(delay))
        self._sleep = sleep
        self.logger = logger or get_logger("MailRelay.batch")

    async def process(self, items: Sequence[Any], *, echo_recipient: bool = False) -> BatchOutcome:
        """Send every item in order and collect one result per item.

        ``echo_recipient`` labels results with the recipient address instead
        of the caller's index, as the legacy batch endpoint does.
        """
        results = []
        for position, item in enumerate(items):
            request = MessageRequest.from_item(item)
            result = await self._process_item(request)
            if echo_recipient:
                recipient = request.recipient if request is not None else None
                result = result.model_copy(update={"index": None, "to_email": recipient or "unknown"})
            results.append(result)
            self.logger.debug("Batch item %d/%d: success=%s", position + 1, len(items), result.success)

        self.dispatcher.metrics.inc_batches()
        sent = sum(1 for result in results if result.success)
        self.logger.info("Batch processed: %d/%d sent", sent, len(results))
        return BatchOutcome(success=True, message=BATCH_COMPLETED_MESSAGE, results=results)

    async def _process_item(self, request: Optional[MessageRequest]) -> SendResult:
        if request is None or not request.is_complete:
            self.dispatcher.metrics.inc_invalid()
            index = request.ordinal if request is not None else MISSING_INDEX
            return SendResult(index=index, success=False, message=MISSING_FIELDS_MESSAGE)

        index = request.ordinal
        try:
            outcome = await self.dispatcher.send(request.recipient, request.subject, request.body)
        except Exception as exc:
            self.logger.exception("Unexpected error while sending batch item %d", index)
            result = SendResult(index=index, success=False, message=FAILED_PREFIX + str(exc))
        else:
            if outcome.ok:
                result = SendResult(index=index, success=True, message=SENT_MESSAGE, message_id=outcome.message_id)
            else:
                result = SendResult(index=index, success=False, message=FAILED_PREFIX + (outcome.error or ""))

        if self.delay:
            await self._sleep(self.delay)
        return result

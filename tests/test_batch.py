import pytest

from mail_relay.batch import BatchProcessor
from mail_relay.dispatcher import MailDispatcher
from mail_relay.models import MessageRequest
from mail_relay.prometheus import MailMetrics


def make_processor(transport, sleep, delay=0.5):
    dispatcher = MailDispatcher(transport, "relay@example.com", metrics=MailMetrics())
    return BatchProcessor(dispatcher, delay=delay, sleep=sleep)


def item(to, subject="S", message="M", **extra):
    return {"to_email": to, "subject": subject, "message": message, **extra}


@pytest.mark.asyncio
async def test_missing_fields_item_fails_and_processing_continues(transport, recording_sleep):
    processor = make_processor(transport, recording_sleep)
    outcome = await processor.process([
        item("a@x.com", "S1", "M1", index=0),
        item("", "S2", "M2", index=1),
    ])

    assert outcome.success is True
    assert outcome.message == "Batch email processing completed"
    first, second = outcome.results
    assert (first.index, first.success, first.message) == (0, True, "Email sent successfully")
    assert first.message_id == "<msg-1@relay.test>"
    assert (second.index, second.success, second.message) == (1, False, "Missing required fields")
    assert second.message_id is None
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_results_keep_input_order_and_indices(transport, recording_sleep):
    transport.fail_for["fail@x.com"] = "mailbox full"
    processor = make_processor(transport, recording_sleep)
    items = [
        item("ok1@x.com", index=7),
        item("fail@x.com", index=3),
        item(None, index=5),
        item("ok2@x.com", index=1),
    ]

    outcome = await processor.process(items)

    assert [r.index for r in outcome.results] == [7, 3, 5, 1]
    assert [r.success for r in outcome.results] == [True, False, False, True]
    assert outcome.results[1].message == "Failed to send email: mailbox full"
    assert [m["To"] for m in transport.sent] == ["ok1@x.com", "ok2@x.com"]


@pytest.mark.asyncio
async def test_missing_index_defaults_to_minus_one(transport, recording_sleep):
    outcome = await make_processor(transport, recording_sleep).process([item("a@x.com"), item("")])
    assert [r.index for r in outcome.results] == [-1, -1]


@pytest.mark.asyncio
async def test_zero_index_is_preserved(transport, recording_sleep):
    outcome = await make_processor(transport, recording_sleep).process([item("a@x.com", index=0)])
    assert outcome.results[0].index == 0


@pytest.mark.asyncio
async def test_malformed_items_yield_failed_results(transport, recording_sleep):
    processor = make_processor(transport, recording_sleep)
    outcome = await processor.process([
        "not-an-object",
        None,
        {"to_email": 42, "subject": "S", "message": "M", "index": 2},
        item("a@x.com", subject="", index=3),
        item("b@x.com", index=4),
    ])

    assert len(outcome.results) == 5
    assert [r.success for r in outcome.results] == [False, False, False, False, True]
    assert all(r.message == "Missing required fields" for r in outcome.results[:4])
    assert [r.index for r in outcome.results] == [-1, -1, 2, 3, 4]
    assert b"mailrelay_invalid_items_total 4.0" in processor.dispatcher.metrics.generate_latest()


@pytest.mark.asyncio
async def test_delay_follows_each_attempted_send_only(transport, recording_sleep):
    transport.fail_for["fail@x.com"] = "rejected"
    processor = make_processor(transport, recording_sleep, delay=0.3)

    await processor.process([item("a@x.com"), item(""), item("fail@x.com"), {"subject": "S"}])

    assert recording_sleep.calls == [0.3, 0.3]


@pytest.mark.asyncio
async def test_zero_delay_never_sleeps(transport, recording_sleep):
    processor = make_processor(transport, recording_sleep, delay=0)
    await processor.process([item("a@x.com"), item("b@x.com")])
    assert recording_sleep.calls == []


@pytest.mark.asyncio
async def test_empty_batch_completes(transport, recording_sleep):
    outcome = await make_processor(transport, recording_sleep).process([])

    assert outcome.success is True
    assert outcome.results == []
    assert recording_sleep.calls == []


@pytest.mark.asyncio
async def test_unexpected_error_is_isolated_to_its_item(transport, recording_sleep):
    processor = make_processor(transport, recording_sleep)
    original_send = transport.send
    calls = []

    async def flaky_send(message):
        calls.append(message["To"])
        if message["To"] == "boom@x.com":
            raise RuntimeError("socket exploded")
        return await original_send(message)

    transport.send = flaky_send
    outcome = await processor.process([item("boom@x.com", index=0), item("ok@x.com", index=1)])

    assert calls == ["boom@x.com", "ok@x.com"]
    assert outcome.results[0].success is False
    assert outcome.results[0].message == "Failed to send email: socket exploded"
    assert outcome.results[1].success is True


@pytest.mark.asyncio
async def test_echo_recipient_labels_results_by_address(transport, recording_sleep):
    processor = make_processor(transport, recording_sleep)
    outcome = await processor.process([item("a@x.com", index=0), item(""), "junk"], echo_recipient=True)

    assert [r.to_email for r in outcome.results] == ["a@x.com", "unknown", "unknown"]
    assert all(r.index is None for r in outcome.results)


@pytest.mark.asyncio
async def test_accepts_message_request_instances(transport, recording_sleep):
    request = MessageRequest(to_email="a@x.com", subject="S", message="M", index=9)
    outcome = await make_processor(transport, recording_sleep).process([request])
    assert outcome.results[0].index == 9
    assert outcome.results[0].success is True


@pytest.mark.asyncio
async def test_wrong_typed_fields_keep_caller_index(transport, recording_sleep):
    processor = make_processor(transport, recording_sleep)
    outcome = await processor.process([
        {"to_email": "a@x.com", "subject": 5, "message": "M", "index": 2},
        {"to_email": "b@x.com", "subject": "S", "message": "M", "index": 1.5},
    ])

    first, second = outcome.results
    assert (first.index, first.success, first.message) == (2, False, "Missing required fields")
    assert (second.index, second.success) == (-1, True)
    assert [m["To"] for m in transport.sent] == ["b@x.com"]


@pytest.mark.asyncio
async def test_items_using_internal_names_are_not_sent(transport, recording_sleep):
    outcome = await make_processor(transport, recording_sleep).process(
        [{"recipient": "a@x.com", "subject": "S", "body": "M", "index": 0}]
    )

    assert outcome.results[0].success is False
    assert outcome.results[0].index == 0
    assert transport.sent == []

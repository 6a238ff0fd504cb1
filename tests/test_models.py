import pytest
from pydantic import ValidationError

from mail_relay.models import BatchOutcome, MessageRequest, SendResult


def test_message_request_reads_wire_names():
    request = MessageRequest.model_validate({"to_email": "a@x.com", "subject": "S", "message": "M", "index": 3})

    assert request.recipient == "a@x.com"
    assert request.body == "M"
    assert request.ordinal == 3
    assert request.is_complete is True


def test_message_request_is_immutable():
    request = MessageRequest(to_email="a@x.com", subject="S", message="M")
    with pytest.raises(ValidationError):
        request.subject = "changed"


@pytest.mark.parametrize(
    "item",
    [
        {"subject": "S", "message": "M"},
        {"to_email": "a@x.com", "subject": "", "message": "M"},
        {"to_email": "a@x.com", "subject": "S", "message": None},
    ],
)
def test_incomplete_requests(item):
    request = MessageRequest.from_item(item)
    assert request is not None
    assert request.is_complete is False
    assert request.ordinal == -1


@pytest.mark.parametrize("item", ["text", 12, None, ["a@x.com"]])
def test_unusable_items(item):
    assert MessageRequest.from_item(item) is None


def test_outcome_serialises_with_wire_names():
    outcome = BatchOutcome(
        message="done",
        results=[
            SendResult(index=0, success=True, message="ok", message_id="<id@x>"),
            SendResult(index=1, success=False, message="Missing required fields"),
        ],
    )

    assert outcome.model_dump(by_alias=True, exclude_none=True) == {
        "success": True,
        "message": "done",
        "results": [
            {"index": 0, "success": True, "message": "ok", "messageId": "<id@x>"},
            {"index": 1, "success": False, "message": "Missing required fields"},
        ],
    }


def test_wrong_typed_text_field_only_blanks_that_field():
    request = MessageRequest.from_item({"to_email": "a@x.com", "subject": 5, "message": "M", "index": 2})

    assert request.recipient == "a@x.com"
    assert request.subject is None
    assert request.is_complete is False
    assert request.ordinal == 2


@pytest.mark.parametrize("raw, expected", [(1.5, -1), ("first", -1), (True, -1), ("3", 3), (4, 4), (0, 0)])
def test_index_is_read_independently(raw, expected):
    request = MessageRequest.from_item({"to_email": "a@x.com", "subject": "S", "message": "M", "index": raw})

    assert request.ordinal == expected
    assert request.is_complete is True


def test_internal_attribute_names_are_not_accepted_on_the_wire():
    request = MessageRequest.from_item({"recipient": "a@x.com", "subject": "S", "body": "M", "index": 0})

    assert request.recipient is None
    assert request.body is None
    assert request.is_complete is False

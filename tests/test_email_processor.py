from __future__ import annotations

from types import SimpleNamespace
from typing import List, Optional

import pytest

from models.email_message import EmailMessage
from models.processing_result import BatchResult, ProcessingStatus
from services.email_processor import AUTO_REPLIED_LABEL, EmailProcessor
from services.filter_engine import FilterEngine
from services.gmail_service import GmailService
from services.pacing import PacingPolicy
from services.rule_store import RuleStore
from utils.errors import CollaboratorError, ConfigurationError, ProcessorBusyError


class FakeMailbox:
    def __init__(
        self,
        unread: Optional[List[EmailMessage]] = None,
        fail_send_for=(),
        fail_mark_read: bool = False,
        label_ok: bool = True,
    ):
        self.unread = unread or []
        self.fail_send_for = set(fail_send_for)
        self.fail_mark_read = fail_mark_read
        self.label_ok = label_ok
        self.calls: List[tuple] = []

    def fetch_unread_messages(self, max_results: int) -> List[EmailMessage]:
        self.calls.append(("fetch", max_results))
        return self.unread[:max_results]

    def send_reply(self, email: EmailMessage, reply_text: str) -> dict:
        if email.id in self.fail_send_for:
            raise CollaboratorError("quota exceeded")
        self.calls.append(("send", email.id, reply_text))
        return {}

    def mark_as_read(self, message_id: str) -> None:
        if self.fail_mark_read:
            raise CollaboratorError(f"Failed to mark {message_id} as read")
        self.calls.append(("read", message_id))

    def add_label(self, message_id: str, label_name: str) -> bool:
        self.calls.append(("label", message_id, label_name))
        return self.label_ok


class FakeGenerator:
    def __init__(self, reply: Optional[str] = "Thanks, we are on it."):
        self.reply = reply
        self.contexts: List[str] = []

    def generate(self, email: EmailMessage, context: str) -> Optional[str]:
        self.contexts.append(context)
        return self.reply


class RecordingPacing(PacingPolicy):
    def __init__(self):
        self.waits = 0

    def wait(self) -> None:
        self.waits += 1


def _processor(write_rules, mailbox=None, generator=None, pacing=None, **kwargs):
    return EmailProcessor(
        mailbox=mailbox or FakeMailbox(),
        filter_engine=FilterEngine(RuleStore(write_rules(**kwargs))),
        generator=generator or FakeGenerator(),
        pacing=pacing or RecordingPacing(),
    )


def test_matching_email_is_replied_and_labelled(write_rules, make_email) -> None:
    mailbox = FakeMailbox()
    generator = FakeGenerator()
    processor = _processor(write_rules, mailbox=mailbox, generator=generator)
    email = make_email()

    result = processor.process_email(email)

    assert result.status is ProcessingStatus.SUCCESS
    assert result.sender == email.sender
    assert result.subject == "Need help"
    assert result.response_length == len("Thanks, we are on it.")
    assert generator.contexts == ["Support request"]
    assert mailbox.calls == [
        ("send", "msg-1", "Thanks, we are on it."),
        ("label", "msg-1", AUTO_REPLIED_LABEL),
    ]


def test_mark_as_read_only_when_enabled(write_rules, make_email) -> None:
    mailbox = FakeMailbox()
    processor = _processor(write_rules, mailbox=mailbox)
    processor.mark_as_read = True

    processor.process_email(make_email())

    assert [call[0] for call in mailbox.calls] == ["send", "read", "label"]


def test_non_matching_email_is_skipped_without_external_calls(write_rules, make_email) -> None:
    mailbox = FakeMailbox()
    generator = FakeGenerator()
    processor = _processor(write_rules, mailbox=mailbox, generator=generator)

    result = processor.process_email(make_email(subject="Lunch?", body="tomorrow"))

    assert result.status is ProcessingStatus.SKIPPED
    assert result.reason == "no_matching_rules"
    assert mailbox.calls == []
    assert generator.contexts == []


def test_ignored_sender_is_skipped(write_rules, make_email) -> None:
    mailbox = FakeMailbox()
    processor = _processor(
        write_rules, mailbox=mailbox, ignore_rules={"ignore_senders": ["noreply"]}
    )

    result = processor.process_email(make_email(sender="noreply@foo.com"))

    assert result.status is ProcessingStatus.SKIPPED
    assert result.reason == "no_matching_rules"
    assert mailbox.calls == []


@pytest.mark.parametrize("reply", [None, "", "   "])
def test_empty_reply_fails_without_sending(write_rules, make_email, reply) -> None:
    mailbox = FakeMailbox()
    processor = _processor(write_rules, mailbox=mailbox, generator=FakeGenerator(reply))

    result = processor.process_email(make_email())

    assert result.status is ProcessingStatus.FAILED
    assert result.reason == "response_generation_failed"
    assert mailbox.calls == []


def test_collaborator_error_is_captured(write_rules, make_email) -> None:
    mailbox = FakeMailbox(fail_send_for={"msg-1"})
    processor = _processor(write_rules, mailbox=mailbox)

    result = processor.process_email(make_email())

    assert result.status is ProcessingStatus.ERROR
    assert result.reason == "quota exceeded"
    assert mailbox.calls == []


def test_generator_exception_is_captured(write_rules, make_email) -> None:
    class ExplodingGenerator:
        def generate(self, email, context):
            raise RuntimeError("model unavailable")

    processor = _processor(write_rules, generator=ExplodingGenerator())
    result = processor.process_email(make_email())

    assert result.status is ProcessingStatus.ERROR
    assert result.reason == "model unavailable"


def test_configuration_error_escalates(tmp_path, make_email) -> None:
    processor = EmailProcessor(
        mailbox=FakeMailbox(),
        filter_engine=FilterEngine(RuleStore(tmp_path / "missing.json")),
        generator=FakeGenerator(),
        pacing=RecordingPacing(),
    )
    with pytest.raises(ConfigurationError):
        processor.process_email(make_email())


def test_empty_batch_returns_zero_counters(write_rules) -> None:
    pacing = RecordingPacing()
    processor = _processor(write_rules, pacing=pacing)

    assert processor.process_batch([]) == BatchResult(total=0, processed=0, skipped=0, failed=0)
    assert pacing.waits == 0


def test_batch_counts_outcomes_and_isolates_errors(write_rules, make_email) -> None:
    mailbox = FakeMailbox(fail_send_for={"boom"})
    pacing = RecordingPacing()
    processor = _processor(write_rules, mailbox=mailbox, pacing=pacing)
    emails = [
        make_email(id="ok-1"),
        make_email(id="boom"),
        make_email(id="skip", subject="Lunch", body="tomorrow"),
        make_email(id="ok-2", subject="support please"),
    ]

    result = processor.process_batch(emails)

    assert result.as_dict() == {"total": 4, "processed": 2, "skipped": 1, "failed": 1}
    assert [call[1] for call in mailbox.calls if call[0] == "send"] == ["ok-1", "ok-2"]
    assert pacing.waits == 3


def test_failed_generation_counts_as_failed(write_rules, make_email) -> None:
    processor = _processor(write_rules, generator=FakeGenerator(None))
    result = processor.process_batch([make_email(id="a"), make_email(id="b")])
    assert result.as_dict() == {"total": 2, "processed": 0, "skipped": 0, "failed": 2}


def test_process_unread_emails_without_messages(write_rules) -> None:
    mailbox = FakeMailbox()
    processor = _processor(write_rules, mailbox=mailbox)

    assert processor.process_unread_emails(5) == BatchResult()
    assert mailbox.calls == [("fetch", 5)]


def test_process_unread_emails_respects_limit(write_rules, make_email) -> None:
    mailbox = FakeMailbox(unread=[make_email(id=str(i)) for i in range(4)])
    processor = _processor(write_rules, mailbox=mailbox)

    result = processor.process_unread_emails(limit=3)

    assert result.total == 3
    assert result.processed == 3


def test_fetch_failure_propagates(write_rules) -> None:
    class BrokenMailbox(FakeMailbox):
        def fetch_unread_messages(self, max_results):
            raise CollaboratorError("401 unauthorized")

    processor = _processor(write_rules, mailbox=BrokenMailbox())
    with pytest.raises(CollaboratorError):
        processor.process_unread_emails()
    assert processor.is_busy is False


def test_overlapping_batch_is_rejected(write_rules, make_email) -> None:
    nested: List[Exception] = []

    class ReentrantGenerator(FakeGenerator):
        def generate(self, email, context):
            try:
                processor.process_batch([email])
            except ProcessorBusyError as exc:
                nested.append(exc)
            return super().generate(email, context)

    processor = _processor(write_rules, generator=ReentrantGenerator())
    result = processor.process_batch([make_email()])

    assert result.processed == 1
    assert len(nested) == 1
    assert processor.is_busy is False


def test_label_failure_still_counts_as_processed(write_rules, make_email) -> None:
    mailbox = FakeMailbox(label_ok=False)
    processor = _processor(write_rules, mailbox=mailbox)

    result = processor.process_batch([make_email()])

    assert result.as_dict() == {"total": 1, "processed": 1, "skipped": 0, "failed": 0}
    assert [call[0] for call in mailbox.calls] == ["send", "label"]


def test_mark_read_failure_after_send_is_an_error(write_rules, make_email) -> None:
    mailbox = FakeMailbox(fail_mark_read=True)
    processor = _processor(write_rules, mailbox=mailbox)
    processor.mark_as_read = True

    result = processor.process_email(make_email())

    assert result.status is ProcessingStatus.ERROR
    assert result.reason == "Failed to mark msg-1 as read"
    assert [call[0] for call in mailbox.calls] == ["send"]


class _Request:
    def __init__(self, result=None, error=None):
        self._result = result
        self._error = error

    def execute(self):
        if self._error:
            raise self._error
        return self._result


class TimingOutLabelsClient:
    """Gmail client whose label endpoints time out at the transport level."""

    def __init__(self):
        self.sent = []

    def users(self):
        return SimpleNamespace(messages=lambda: self, labels=lambda: self)

    def send(self, userId, body):
        self.sent.append(body)
        return _Request({"id": "sent-1"})

    def list(self, userId):
        return _Request(error=TimeoutError("timed out"))


def test_label_transport_error_through_gmail_service_is_success(write_rules, make_email) -> None:
    client = TimingOutLabelsClient()
    gmail = GmailService(SimpleNamespace(user_id="me"), auth_service=None, client=client)
    processor = _processor(write_rules, mailbox=gmail)

    result = processor.process_email(make_email())

    assert result.status is ProcessingStatus.SUCCESS
    assert len(client.sent) == 1

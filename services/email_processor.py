from __future__ import annotations

import logging
import threading
from typing import Optional, Sequence

from models.email_message import EmailMessage
from models.processing_result import BatchResult, ProcessingResult, ProcessingStatus
from services.filter_engine import FilterEngine
from services.gmail_service import GmailService
from services.pacing import FixedDelayPacing, PacingPolicy
from services.response_generator import ResponseGenerator
from utils.errors import ConfigurationError, GenerationFailure, ProcessorBusyError

LOGGER = logging.getLogger(__name__)
AUTO_REPLIED_LABEL = "AutoReplied"
NO_MATCHING_RULES = "no_matching_rules"
RESPONSE_GENERATION_FAILED = "response_generation_failed"


class EmailProcessor:
    """Runs filter -> generate -> send -> mark read -> label, one message at a time."""

    def __init__(
        self,
        mailbox: GmailService,
        filter_engine: FilterEngine,
        generator: ResponseGenerator,
        pacing: Optional[PacingPolicy] = None,
        mark_as_read: bool = False,
        label_name: str = AUTO_REPLIED_LABEL,
    ):
        self._mailbox = mailbox
        self._filter = filter_engine
        self._generator = generator
        self._pacing = pacing or FixedDelayPacing()
        self.mark_as_read = mark_as_read
        self.label_name = label_name
        self._busy = threading.Lock()

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    def process_email(self, email: EmailMessage) -> ProcessingResult:
        LOGGER.info("Processing email from %s: %s", email.sender, email.subject)
        try:
            if not self._filter.should_process(email):
                LOGGER.debug("Email skipped, no matching rules: %s", email.subject)
                return ProcessingResult.skipped(NO_MATCHING_RULES)

            context = self._filter.build_context(email)
            LOGGER.debug("Generated context for %s: %s", email.id, context)
            reply = self._generate(email, context)

            self._mailbox.send_reply(email, reply)
            if self.mark_as_read:
                self._mailbox.mark_as_read(email.id)
                LOGGER.debug("Marked %s as read", email.id)
            if self._mailbox.add_label(email.id, self.label_name):
                LOGGER.debug("Added %s label to %s", self.label_name, email.id)
        except ConfigurationError:
            raise
        except GenerationFailure:
            LOGGER.warning("Failed to generate response for %s", email.subject)
            return ProcessingResult.failed(RESPONSE_GENERATION_FAILED)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error processing email from %s: %s", email.sender, exc)
            return ProcessingResult.error(str(exc))

        return ProcessingResult(
            status=ProcessingStatus.SUCCESS,
            sender=email.sender,
            subject=email.subject,
            response_length=len(reply),
        )

    def _generate(self, email: EmailMessage, context: str) -> str:
        reply = self._generator.generate(email, context)
        if not reply or not reply.strip():
            raise GenerationFailure(RESPONSE_GENERATION_FAILED)
        LOGGER.debug("Generated response for %s: %.100s", email.id, reply)
        return reply

    def process_batch(self, emails: Sequence[EmailMessage]) -> BatchResult:
        if not self._busy.acquire(blocking=False):
            raise ProcessorBusyError("A batch is already being processed")
        try:
            return self._run_batch(emails)
        finally:
            self._busy.release()

    def _run_batch(self, emails: Sequence[EmailMessage]) -> BatchResult:
        results = BatchResult(total=len(emails))
        for index, email in enumerate(emails):
            if index:
                self._pacing.wait()
            results.record(self.process_email(email))
        LOGGER.info("Batch processing complete: %s", results.as_dict())
        return results

    def process_unread_emails(self, limit: int = 10) -> BatchResult:
        if not self._busy.acquire(blocking=False):
            raise ProcessorBusyError("A batch is already being processed")
        try:
            LOGGER.info("Starting email processing cycle")
            try:
                emails = self._mailbox.fetch_unread_messages(limit)
            except Exception as exc:
                LOGGER.error("Error in processing cycle: %s", exc)
                raise
            if not emails:
                LOGGER.info("No unread emails to process")
                return BatchResult()
            LOGGER.info("Found %s unread email(s)", len(emails))
            return self._run_batch(emails)
        finally:
            self._busy.release()

from __future__ import annotations


class EmailAutomationError(Exception):
    """Base class for errors raised by the auto-reply assistant."""


class ConfigurationError(EmailAutomationError):
    """Rules file or environment configuration is missing or malformed."""


class GenerationFailure(EmailAutomationError):
    """The response generator produced no usable reply."""


class CollaboratorError(EmailAutomationError):
    """A Gmail API call failed."""


class RuleNotFoundError(EmailAutomationError):
    def __init__(self, rule_id: str):
        super().__init__(f'Rule "{rule_id}" not found')
        self.rule_id = rule_id


class ProcessorBusyError(EmailAutomationError):
    """A batch is already running on this processor."""

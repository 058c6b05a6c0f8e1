from __future__ import annotations

import json
from typing import Any


class DtPushError(Exception):
    """Base class for failures reported back to the caller."""


class InitializationError(DtPushError):
    """Configuration could not be resolved; nothing was processed."""


class LookupFailure(DtPushError):
    """Job details or the monspec artifact could not be fetched."""


class MissingFieldError(DtPushError):

    def __init__(self, field: str):
        super().__init__(f'{field} missing')
        self.field = field


class NoMatchingEntitiesError(DtPushError):
    """
    Dynatrace accepted the request, but no monitored entity matched the
    attach rules. Usually a tag configuration problem.
    """

    def __init__(self, attach_rules: Any, body: str | None = None):
        super().__init__(
            'Failed to push Dynatrace event!\n'
            'NO Entities found that match your Tags: '
            f'{json.dumps(attach_rules, default=str)}\n\n'
            'Double check your tag configuration in monspec or in Dynatrace!'
        )
        self.attach_rules = attach_rules
        self.body = body


class SubmissionFailedError(DtPushError):

    def __init__(self, status: int | None, body: str | None):
        super().__init__(f'Failed to send event to Dynatrace: {body}')
        self.status = status
        self.body = body


class ParameterError(DtPushError):
    """CodePipeline `UserParameters` could not be parsed."""

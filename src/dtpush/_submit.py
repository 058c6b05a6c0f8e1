from __future__ import annotations

import json
from dataclasses import dataclass
from time import time
from typing import Any, Callable

from ._constants import EVENTS_API_PATH, NO_MATCHING_ENTITIES_MARKER
from ._errors import MissingFieldError, NoMatchingEntitiesError
from ._log import LOG
from ._models import DtConfig, EventRecord, EventType, Outcome, OutcomeKind
from ._redact import redact
from ._requests import dt_api_post

Poster = Callable[..., 'tuple[int, str]']


def _now_ms() -> int:
    return int(time() * 1000)


def apply_config_defaults(record: EventRecord, config: DtConfig) -> EventRecord:
    record.set_default('dt_api_token', config.api_token)
    record.set_default('dt_tenant_url', config.tenant_url)
    return record


def validate(record: EventRecord) -> None:
    """
    Check mandatory fields, stopping at the first one missing.

    :raises MissingFieldError: naming the missing field
    """
    if not record.dt_api_token:
        raise MissingFieldError('dtApiToken')
    if not record.dt_tenant_url:
        raise MissingFieldError('dtTenantURL')
    if not record.has_attach_rules:
        raise MissingFieldError('attachRules')
    if not record.event_type:
        raise MissingFieldError('eventType')

    if record.event_type == EventType.CUSTOM_ANNOTATION:
        if not record.annotation_type:
            raise MissingFieldError('annotationType')

    if record.event_type == EventType.CUSTOM_DEPLOYMENT:
        if not record.deployment_name:
            raise MissingFieldError('deploymentName')


def events_url(tenant_url: str) -> str:
    return tenant_url.rstrip('/') + EVENTS_API_PATH


def _error_message(body: str) -> str | None:
    if not body.startswith('{'):
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return None
    error = data.get('error') if isinstance(data, dict) else None
    if isinstance(error, dict) and isinstance(error.get('message'), str):
        return error['message']
    return None


def _no_entity_matched(body: str) -> bool:
    message = _error_message(body)
    return message is not None and NO_MATCHING_ENTITIES_MARKER in message


@dataclass(frozen=True, slots=True)
class ResponseRule:
    status: int
    kind: OutcomeKind
    # extra check on the raw body, if the status alone is not enough
    matches: Callable[[str], bool] | None = None

    def applies(self, status: int, body: str) -> bool:
        if status != self.status:
            return False
        return self.matches is None or self.matches(body)


RESPONSE_RULES = (
    ResponseRule(200, OutcomeKind.SUCCESS),
    ResponseRule(400, OutcomeKind.NO_MATCHING_ENTITIES, _no_entity_matched),
)


def classify_response(status: int,
                      body: str,
                      attach_rules: Any = None) -> Outcome:
    kind = next((r.kind for r in RESPONSE_RULES if r.applies(status, body)),
                OutcomeKind.SUBMISSION_FAILED)

    if kind is OutcomeKind.SUCCESS:
        return Outcome(kind, 'Successfully sent event to Dynatrace',
                       status=status, body=body)

    if kind is OutcomeKind.NO_MATCHING_ENTITIES:
        return Outcome(kind,
                       str(NoMatchingEntitiesError(attach_rules, body)),
                       status=status,
                       body=body,
                       attach_rules=attach_rules)

    return Outcome(kind, f'Failed to send event to Dynatrace: {body}',
                   status=status, body=body)


def submit(record: EventRecord,
           config: DtConfig,
           *,
           post: Poster = dt_api_post,
           clock: Callable[[], int] = _now_ms) -> Outcome:
    """
    Validate ``record`` and push it to Dynatrace.

    Never raises for expected failures; the returned :class:`Outcome`
    says what happened. No request is made if validation fails.
    """
    apply_config_defaults(record, config)

    LOG.info('Posted data', extra={'dtpush': redact(record.to_dict())})

    try:
        validate(record)
    except MissingFieldError as e:
        return Outcome(OutcomeKind.VALIDATION_FAILED, str(e),
                       missing_field=e.field)

    url = events_url(record.dt_tenant_url)
    event = record.to_wire(clock())

    LOG.info('HTTP POST %s', url, extra={'dtpush': event})

    try:
        status, body = post(url, record.dt_api_token, event,
                            timeout=config.timeout_s)
    except (OSError, ValueError) as e:  # URLError, timeouts, bad URL or token
        return Outcome(OutcomeKind.SUBMISSION_FAILED,
                       f'Failed to send event to Dynatrace: {e}')

    outcome = classify_response(status, body, record.attach_rules)
    LOG.info('Dynatrace responded with HTTP %s (%s)', status,
             outcome.kind.value)
    return outcome

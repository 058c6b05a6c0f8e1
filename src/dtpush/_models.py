from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from logging import INFO, WARNING
from os import getenv
from typing import Any

from ._constants import (DEFAULT_SOURCE,
                         DEFAULT_TIMEOUT_S,
                         ENV_API_TOKEN,
                         ENV_API_TOKEN_PARAM,
                         ENV_APP,
                         ENV_ENV,
                         ENV_LOG_LEVEL,
                         ENV_QUIET_LEVEL,
                         ENV_TENANT_URL,
                         ENV_TIMEOUT)
from ._env_helpers import parse_float, parse_level, parse_quiet
from ._errors import (DtPushError,
                      LookupFailure,
                      MissingFieldError,
                      NoMatchingEntitiesError,
                      SubmissionFailedError)


class EventType(str, Enum):
    CUSTOM_DEPLOYMENT = 'CUSTOM_DEPLOYMENT'
    CUSTOM_ANNOTATION = 'CUSTOM_ANNOTATION'

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class DtConfig:
    # Dynatrace coordinates
    api_token: str | None = None
    tenant_url: str | None = None
    # SSM parameter to read the token from, if `api_token` is not set
    api_token_param: str | None = None

    app: str | None = None
    env: str | None = None
    log_level: int = INFO
    quiet_level: int | None = WARNING
    timeout_s: float = DEFAULT_TIMEOUT_S

    def with_env_defaults(self) -> DtConfig:
        cfg = DtConfig.from_env()
        return cfg.overlay(self)

    def overlay(self, other: DtConfig) -> DtConfig:
        """
        Return a new config where `other` overrides `self`.
        Semantics:
          - strings: None means "no override"
          - quiet_level: None is an explicit override meaning "disable"
          - log_level / timeout_s: override when they differ from the default
        """
        out = replace(self)

        for name in ('api_token', 'tenant_url', 'api_token_param',
                     'app', 'env'):
            v = getattr(other, name)
            if v is not None:
                setattr(out, name, v)

        out.quiet_level = other.quiet_level

        if other.log_level != INFO:
            out.log_level = other.log_level
        if other.timeout_s != DEFAULT_TIMEOUT_S:
            out.timeout_s = other.timeout_s

        return out

    @classmethod
    def from_env(cls) -> DtConfig:
        return cls(
            api_token=getenv(ENV_API_TOKEN) or None,
            tenant_url=getenv(ENV_TENANT_URL) or None,
            api_token_param=getenv(ENV_API_TOKEN_PARAM) or None,
            app=getenv(ENV_APP),
            env=getenv(ENV_ENV),
            log_level=parse_level(getenv(ENV_LOG_LEVEL), default=INFO),
            quiet_level=parse_quiet(getenv(ENV_QUIET_LEVEL),
                                    default_level=WARNING),
            timeout_s=parse_float(getenv(ENV_TIMEOUT),
                                  default=DEFAULT_TIMEOUT_S),
        )


# python attribute -> key used by callers and by the Dynatrace API
_WIRE_NAMES = {
    'event_type': 'eventType',
    'attach_rules': 'attachRules',
    'deployment_name': 'deploymentName',
    'deployment_version': 'deploymentVersion',
    'deployment_project': 'deploymentProject',
    'annotation_type': 'annotationType',
    'annotation_description': 'annotationDescription',
    'source': 'source',
    'custom_properties': 'customProperties',
    'dt_api_token': 'dtApiToken',
    'dt_tenant_url': 'dtTenantURL',
    'environment_name': 'environmentName',
    'user_comment': 'userComment',
}
_ATTR_NAMES = {v: k for k, v in _WIRE_NAMES.items()}

# Passed on to Dynatrace when set, in this order
OPTIONAL_WIRE_FIELDS = (
    'deployment_name',
    'deployment_version',
    'deployment_project',
    'annotation_type',
    'annotation_description',
    'source',
    'custom_properties',
)


def _coerce_event_type(value: Any) -> Any:
    if isinstance(value, str) and not isinstance(value, EventType):
        try:
            return EventType(value)
        except ValueError:
            # other Dynatrace event types are passed through as-is
            return value
    return value


@dataclass(slots=True)
class EventRecord:
    """
    Canonical Dynatrace event, built up field by field.

    Explicit caller input is set first; everything else goes through
    :meth:`set_default`, which never overwrites a value that is already
    present.
    """
    event_type: EventType | str | None = None
    attach_rules: dict[str, Any] | None = None

    # CUSTOM_DEPLOYMENT
    deployment_name: str | None = None
    deployment_version: str | None = None
    deployment_project: str | None = None

    # CUSTOM_ANNOTATION
    annotation_type: str | None = None
    annotation_description: str | None = None

    source: str | None = None
    custom_properties: dict[str, str] | None = None

    dt_api_token: str | None = None
    dt_tenant_url: str | None = None

    # scratch values from CodePipeline UserParameters, never sent
    environment_name: str | None = None
    user_comment: str | None = None

    # unknown keys from the caller, kept for logging
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EventRecord:
        record = cls()
        for key, value in deepcopy(data or {}).items():
            attr = _ATTR_NAMES.get(key)
            if attr is None:
                record.extra[key] = value
            else:
                setattr(record, attr, value)

        record.event_type = _coerce_event_type(record.event_type)
        return record

    def to_dict(self) -> dict[str, Any]:
        out = {_WIRE_NAMES[f.name]: getattr(self, f.name)
               for f in fields(self)
               if f.name != 'extra' and getattr(self, f.name) is not None}
        out.update(self.extra)
        return out

    def set_default(self, name: str, value: Any) -> bool:
        """Set ``name`` to ``value`` unless it already holds a value."""
        if getattr(self, name):
            return False
        setattr(self, name, value)
        return True

    def add_tag_rules(self, rules: list[dict[str, Any]]) -> None:
        # concatenate, never replace
        if not self.attach_rules:
            self.attach_rules = {'tagRule': []}
        if not self.attach_rules.get('tagRule'):
            self.attach_rules['tagRule'] = []
        self.attach_rules['tagRule'] = self.attach_rules['tagRule'] + list(rules)

    @property
    def has_attach_rules(self) -> bool:
        rules = self.attach_rules
        if isinstance(rules, dict):
            return any(rules.values())
        return bool(rules)

    def to_wire(self, now_ms: int) -> dict[str, Any]:
        """Dynatrace `POST /api/v1/events` body."""
        event = {
            'start': str(now_ms),
            'end': str(now_ms),
            'source': self.source or DEFAULT_SOURCE,
            'eventType': str(self.event_type),
            'attachRules': self.attach_rules,
        }

        for name in OPTIONAL_WIRE_FIELDS:
            value = getattr(self, name)
            if value:
                event[_WIRE_NAMES[name]] = value

        return event


@dataclass(frozen=True, slots=True)
class CodeDeployDetails:
    deployment_id: str | None
    deployment_group: str | None
    application: str | None


@dataclass(frozen=True, slots=True)
class JobContext:
    pipeline_name: str
    stage: str | None = None
    action: str | None = None
    codedeploy: CodeDeployDetails | None = None


class OutcomeKind(str, Enum):
    SUCCESS = 'success'
    ACKNOWLEDGED = 'acknowledged'
    NO_MATCHING_ENTITIES = 'no_matching_entities'
    SUBMISSION_FAILED = 'submission_failed'
    VALIDATION_FAILED = 'validation_failed'
    LOOKUP_FAILED = 'lookup_failed'


@dataclass(frozen=True, slots=True)
class Outcome:
    kind: OutcomeKind
    message: str
    status: int | None = None
    # raw response body from Dynatrace
    body: str | None = None
    # name of the missing field (VALIDATION_FAILED)
    missing_field: str | None = None
    attach_rules: Any = None

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.ACKNOWLEDGED)

    def to_error(self) -> DtPushError:
        kind = self.kind
        if kind is OutcomeKind.VALIDATION_FAILED and self.missing_field:
            return MissingFieldError(self.missing_field)
        if kind is OutcomeKind.NO_MATCHING_ENTITIES:
            return NoMatchingEntitiesError(self.attach_rules, self.body)
        if kind is OutcomeKind.LOOKUP_FAILED:
            return LookupFailure(self.message)
        if kind is OutcomeKind.SUBMISSION_FAILED:
            return SubmissionFailedError(self.status, self.body)
        return DtPushError(self.message)

    def raise_for_outcome(self) -> None:
        if not self.ok:
            raise self.to_error()


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    function_name: str | None
    request_id: str | None
    log_group: str | None
    log_stream: str | None
    region: str | None

    def as_log_fields(self) -> dict[str, Any]:
        src = {
            'function_name': self.function_name,
            'request_id': self.request_id,
            'log_stream': self.log_stream,
            'region': self.region,
        }
        return {k: v for k, v in src.items() if v is not None}


def from_lambda_context(context: Any) -> RuntimeContext:
    return RuntimeContext(
        function_name=(getattr(context, 'function_name', None)
                       or getenv('AWS_LAMBDA_FUNCTION_NAME')),
        request_id=getattr(context, 'aws_request_id', None),
        log_group=(getattr(context, 'log_group_name', None)
                   or getenv('AWS_LAMBDA_LOG_GROUP_NAME')),
        log_stream=(getattr(context, 'log_stream_name', None)
                    or getenv('AWS_LAMBDA_LOG_STREAM_NAME')),
        region=getenv('AWS_REGION') or getenv('AWS_DEFAULT_REGION'),
    )

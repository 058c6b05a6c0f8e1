from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol

from ._constants import CODEPIPELINE_SOURCE
from ._errors import LookupFailure, ParameterError
from ._invocation import DirectCall, PipelineJob
from ._log import LOG
from ._models import EventRecord, EventType, JobContext
from ._monspec import get_all_tag_rules, parse_monspec

if TYPE_CHECKING:
    class PipelineService(Protocol):
        def get_job_details(self, job_id: str) -> JobContext:
            ...

        def download_file(self,
                          artifact: dict[str, Any],
                          credentials: dict[str, Any] | None,
                          override_url: str | None = None) -> str:
            ...


TagRuleGetter = Callable[[dict[str, Any], 'str | None'], list]


@dataclass(slots=True)
class ParsedParameters:
    record: EventRecord
    # remote monspec location, if one was given instead of a comment
    monspec_url: str | None = None


def parse_user_parameters(text: str) -> ParsedParameters:
    """
    Parse CodePipeline `UserParameters`.

    Either a JSON object with the event fields, or a comma separated
    ``<EnvironmentName>,<MonspecURL | Comment>`` string.
    """
    if text.startswith('{'):
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ParameterError(f'UserParameters is not valid JSON: {e}') from e
        if not isinstance(data, dict):
            raise ParameterError('UserParameters must be a JSON object')
        return ParsedParameters(EventRecord.from_dict(data))

    parts = text.split(',')
    record = EventRecord(environment_name=parts[0])

    if len(parts) > 1 and parts[1].startswith('http'):
        return ParsedParameters(record, monspec_url=parts[1])

    record.user_comment = parts[1] if len(parts) > 1 else text
    return ParsedParameters(record)


def default_custom_properties(details: JobContext) -> dict[str, str]:
    props = {
        'PipelineName': details.pipeline_name,
        'PipelineStage': details.stage,
        'PipelineAction': details.action,
    }
    return props


def apply_job_defaults(record: EventRecord,
                       details: JobContext,
                       job_id: str) -> EventRecord:
    """Fill everything the caller left out from the CodePipeline job."""
    cd = details.codedeploy

    # without a type it is just an annotation, unless CodeDeploy ran
    record.set_default('event_type',
                       EventType.CUSTOM_DEPLOYMENT if cd
                       else EventType.CUSTOM_ANNOTATION)

    if record.event_type == EventType.CUSTOM_ANNOTATION:
        record.set_default('annotation_type', details.pipeline_name)
        if record.user_comment:
            record.annotation_description = record.user_comment

    if record.event_type == EventType.CUSTOM_DEPLOYMENT:
        record.set_default('deployment_name',
                           record.user_comment or details.pipeline_name)
        record.set_default('deployment_version',
                           cd.deployment_id if cd and cd.deployment_id
                           else job_id)
        record.set_default('deployment_project', details.pipeline_name)

    # only when the caller sent none at all; an empty mapping is kept
    if record.custom_properties is None:
        record.custom_properties = default_custom_properties(details)
        if cd:
            record.custom_properties.update({
                'CodeDeploy.DeploymentGroup': cd.deployment_group,
                'CodeDeploy.Application': cd.application,
                'CodeDeploy.DeploymentId': cd.deployment_id,
            })

    record.set_default('source', CODEPIPELINE_SOURCE)
    return record


def normalize_direct_call(invocation: DirectCall) -> EventRecord:
    body = invocation.body
    # a non-object body carries no fields; validation reports what's missing
    return EventRecord.from_dict(body if isinstance(body, dict) else None)


def normalize_pipeline_job(job: PipelineJob,
                           pipeline: PipelineService,
                           *,
                           tag_rules: TagRuleGetter = get_all_tag_rules,
                           ) -> EventRecord:
    """
    Build the event for a CodePipeline job.

    Explicit `UserParameters` win over values derived from the job, which
    win over global defaults. Tag rules from the monspec in the first input
    artifact are appended to `attachRules.tagRule`.

    :raises ParameterError: if `UserParameters` is malformed JSON
    :raises LookupFailure: if job details or the monspec can't be fetched
    """
    parsed = parse_user_parameters(job.user_parameters)
    record = parsed.record

    try:
        details = pipeline.get_job_details(job.job_id)
    except Exception as e:
        raise LookupFailure(
            f"Can't retrieve job details from CodePipeline: {e}") from e

    apply_job_defaults(record, details, job.job_id)

    artifact = job.first_artifact
    if artifact is None:
        return record

    try:
        content = pipeline.download_file(artifact,
                                         job.artifact_credentials,
                                         parsed.monspec_url)
    except Exception as e:
        raise LookupFailure(f"Can't download monspec: {e}") from e

    rules = tag_rules(parse_monspec(content), record.environment_name)
    LOG.debug('monspec: %d tag rule(s) for environment %r',
              len(rules), record.environment_name)
    record.add_tag_rules(rules)

    return record

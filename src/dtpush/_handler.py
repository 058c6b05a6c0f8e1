from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from ._api import get_logger, init
from ._codepipeline import CodePipelineService
from ._errors import DtPushError, LookupFailure
from ._invocation import AsyncNotification, PipelineJob, classify
from ._log import LOG
from ._models import DtConfig, Outcome, OutcomeKind
from ._monspec import get_all_tag_rules
from ._normalizer import (TagRuleGetter,
                          normalize_direct_call,
                          normalize_pipeline_job)
from ._redact import redact
from ._requests import dt_api_post
from ._runtime import reset_runtime_context, set_lambda_context
from ._submit import Poster, submit

if TYPE_CHECKING:
    from ._normalizer import PipelineService

    class SupportsJobResult(Protocol):
        def put_job_success(self, message: str, job_id: str) -> None:
            ...

        def put_job_failure(self, message: str, job_id: str) -> None:
            ...


class PipelineReporter:
    """Reports the outcome back to CodePipeline as the job result."""
    __slots__ = ('_pipeline', '_job_id')

    def __init__(self, pipeline: SupportsJobResult, job_id: str):
        self._pipeline = pipeline
        self._job_id = job_id

    def report(self, outcome: Outcome) -> None:
        if outcome.ok:
            self._pipeline.put_job_success(outcome.message, self._job_id)
            LOG.info('Success: %s', outcome.message)
        else:
            self._pipeline.put_job_failure(outcome.message, self._job_id)
            LOG.error('Error: %s', outcome.message)


class DirectReporter:
    """
    Reports the outcome to a direct caller: a result on success, an
    exception (the Lambda failure) otherwise.
    """
    __slots__ = ()

    def report(self, outcome: Outcome) -> dict[str, Any]:
        if not outcome.ok:
            LOG.error('Error: %s', outcome.message)
            raise outcome.to_error()

        LOG.info('Success: %s', outcome.message)
        return {'message': outcome.message}


def _failure_outcome(e: DtPushError) -> Outcome:
    kind = (OutcomeKind.LOOKUP_FAILED if isinstance(e, LookupFailure)
            else OutcomeKind.VALIDATION_FAILED)
    return Outcome(kind, str(e))


class EventPusher:
    """
    Turns one Lambda invocation into (at most) one Dynatrace event.
    """
    __slots__ = (
        '_config',
        '_pipeline',
        '_post',
        '_tag_rules',
    )

    def __init__(
        self,
        config: DtConfig,
        *,
        pipeline: PipelineService | None = None,
        post: Poster = dt_api_post,
        tag_rules: TagRuleGetter = get_all_tag_rules,
    ):
        self._config = config
        self._pipeline = pipeline or CodePipelineService()
        self._post = post
        self._tag_rules = tag_rules

    def handle(self, event: dict[str, Any], context: Any = None):
        token = set_lambda_context(context)
        try:
            LOG.info('Event data', extra={'dtpush': redact(event)})
            return self._dispatch(event)
        finally:
            reset_runtime_context(token)

    def _dispatch(self, event: dict[str, Any]):
        invocation = classify(event)

        if isinstance(invocation, AsyncNotification):
            return DirectReporter().report(self._acknowledge(invocation))

        if isinstance(invocation, PipelineJob):
            return self._handle_job(invocation)

        record = normalize_direct_call(invocation)
        outcome = submit(record, self._config, post=self._post)
        return DirectReporter().report(outcome)

    def _handle_job(self, job: PipelineJob) -> None:
        LOG.info('Invoked from CodePipeline with JobId: %s', job.job_id)
        reporter = PipelineReporter(self._pipeline, job.job_id)

        try:
            record = normalize_pipeline_job(job, self._pipeline,
                                            tag_rules=self._tag_rules)
            outcome = submit(record, self._config, post=self._post)
        except DtPushError as e:
            reporter.report(_failure_outcome(e))
            return None
        except Exception as e:
            # the pipeline would otherwise wait for the job to time out
            reporter.report(Outcome(OutcomeKind.SUBMISSION_FAILED, str(e)))
            raise

        reporter.report(outcome)
        return None

    @staticmethod
    def _acknowledge(note: AsyncNotification) -> Outcome:
        LOG.info('SNS message: %s', note.message)

        created = note.deployment_created()
        if created:
            # no follow-up is defined for newly created deployments yet
            LOG.info('CodeDeploy deployment %s created '
                     '(application=%s, group=%s)',
                     created['deploymentId'],
                     created.get('applicationName'),
                     created.get('deploymentGroupName'))

        return Outcome(OutcomeKind.ACKNOWLEDGED, 'Notification acknowledged')


_PUSHER: EventPusher | None = None


def handler(event: dict[str, Any], context: Any = None):
    """
    AWS Lambda entry point.

    Configuration is resolved once per cold start; a failure there is
    fatal and raised before the event is looked at.
    """
    global _PUSHER

    if _PUSHER is None:
        config = init()
        get_logger('dtpush')
        _PUSHER = EventPusher(config)

    return _PUSHER.handle(event, context)

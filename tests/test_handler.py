import json
from types import SimpleNamespace

import pytest

from dtpush import _handler
from dtpush._errors import (InitializationError,
                            MissingFieldError,
                            NoMatchingEntitiesError)
from dtpush._handler import EventPusher, handler
from dtpush._invocation import AsyncNotification
from dtpush._models import DtConfig, JobContext, OutcomeKind
from dtpush._runtime import get_runtime_context

from conftest import (API_TOKEN,
                      MONSPEC,
                      NO_MATCH_BODY,
                      FakePipeline,
                      RecordingPoster,
                      pipeline_event)

DIRECT_EVENT = {
    'eventType': 'CUSTOM_DEPLOYMENT',
    'deploymentName': 'svc-a',
    'attachRules': {'tagRule': [{'meTypes': ['SERVICE'],
                                 'tags': ['env:prod']}]},
}

LAMBDA_CONTEXT = SimpleNamespace(
    function_name='pushDynatraceDeploymentEvent',
    aws_request_id='8f5e4b6c-0000-4000-8000-000000000000',
    log_group_name='/aws/lambda/pushDynatraceDeploymentEvent',
    log_stream_name='2018/01/19/[$LATEST]abc',
)

ARTIFACT = {'name': 'SourceOutput',
            'location': {'type': 'S3',
                         's3Location': {'bucketName': 'artifacts',
                                        'objectKey': 'src.zip'}}}


def test_direct_call_success(config, poster) -> None:
    pusher = EventPusher(config, pipeline=FakePipeline(), post=poster)

    result = pusher.handle({'eventBody': DIRECT_EVENT}, LAMBDA_CONTEXT)

    assert result == {'message': 'Successfully sent event to Dynatrace'}
    assert poster.calls[0]['body']['deploymentName'] == 'svc-a'
    # runtime context is only set for the duration of the call
    assert get_runtime_context() is None


def test_direct_call_validation_failure(config, poster) -> None:
    pusher = EventPusher(config, pipeline=FakePipeline(), post=poster)
    event = {k: v for k, v in DIRECT_EVENT.items() if k != 'attachRules'}

    with pytest.raises(MissingFieldError, match='attachRules missing'):
        pusher.handle(event)

    assert poster.calls == []


def test_direct_call_no_matching_entities(config) -> None:
    poster = RecordingPoster(status=400, body=NO_MATCH_BODY)
    pusher = EventPusher(config, pipeline=FakePipeline(), post=poster)

    with pytest.raises(NoMatchingEntitiesError) as exc_info:
        pusher.handle(DIRECT_EVENT)

    assert exc_info.value.attach_rules == DIRECT_EVENT['attachRules']


def test_pipeline_job_success(config, poster, annotation_job_context) -> None:
    pipeline = FakePipeline(details=annotation_job_context,
                            content=json.dumps(MONSPEC))
    pusher = EventPusher(config, pipeline=pipeline, post=poster)

    result = pusher.handle(
        pipeline_event('Production,Deployed successfully',
                       job_id='job-9', artifacts=[ARTIFACT]),
        LAMBDA_CONTEXT)

    assert result is None
    assert pipeline.successes == [
        ('Successfully sent event to Dynatrace', 'job-9')]
    assert pipeline.failures == []

    body = poster.calls[0]['body']
    assert body['eventType'] == 'CUSTOM_ANNOTATION'
    assert body['annotationType'] == 'sample-pipeline'
    assert body['annotationDescription'] == 'Deployed successfully'
    assert body['source'] == 'AWS CodePipeline'
    assert body['attachRules']['tagRule'][0]['meTypes'] == ['SERVICE']


def test_pipeline_job_lookup_failure(config, poster) -> None:
    pipeline = FakePipeline(details_error=RuntimeError('JobNotFound'))
    pusher = EventPusher(config, pipeline=pipeline, post=poster)

    assert pusher.handle(pipeline_event('Production,ok', job_id='job-2')) is None

    (message, job_id), = pipeline.failures
    assert job_id == 'job-2'
    assert 'JobNotFound' in message
    assert poster.calls == []


def test_pipeline_job_bad_parameters(config, poster) -> None:
    pipeline = FakePipeline()
    pusher = EventPusher(config, pipeline=pipeline, post=poster)

    pusher.handle(pipeline_event('{"eventType": ', job_id='job-3'))

    assert pipeline.failures[0][1] == 'job-3'
    assert poster.calls == []


def test_pipeline_job_missing_attach_rules(config, poster,
                                           annotation_job_context) -> None:
    pipeline = FakePipeline(details=annotation_job_context)
    pusher = EventPusher(config, pipeline=pipeline, post=poster)

    pusher.handle(pipeline_event('Production,ok', job_id='job-4'))

    assert pipeline.failures == [('attachRules missing', 'job-4')]
    assert poster.calls == []


def test_pipeline_job_rejected_by_dynatrace(config,
                                            deployment_job_context) -> None:
    pipeline = FakePipeline(details=deployment_job_context,
                            content=json.dumps(MONSPEC))
    poster = RecordingPoster(status=500, body='Internal Server Error')
    pusher = EventPusher(config, pipeline=pipeline, post=poster)

    pusher.handle(pipeline_event('Production,ok', job_id='job-5',
                                 artifacts=[ARTIFACT]))

    assert pipeline.failures == [
        ('Failed to send event to Dynatrace: Internal Server Error', 'job-5')]


def test_unexpected_error_fails_the_job_and_is_raised(config, poster,
                                                      annotation_job_context):
    def broken_rules(monspec, environment_name):
        raise KeyError('etype')

    pipeline = FakePipeline(details=annotation_job_context,
                            content=json.dumps(MONSPEC))
    pusher = EventPusher(config, pipeline=pipeline, post=poster,
                         tag_rules=broken_rules)

    with pytest.raises(KeyError):
        pusher.handle(pipeline_event('Production,ok', job_id='job-6',
                                     artifacts=[ARTIFACT]))

    assert pipeline.failures[0][1] == 'job-6'


def test_sns_notification_is_acknowledged(config, poster) -> None:
    pipeline = FakePipeline()
    pusher = EventPusher(config, pipeline=pipeline, post=poster)
    message = json.dumps({'deploymentId': 'd-96V3B7QKP',
                          'applicationName': 'HelloWorld',
                          'deploymentGroupName': 'Production',
                          'status': 'CREATED'})

    result = pusher.handle({'Records': [{'Sns': {'Message': message}}]})

    assert result == {'message': 'Notification acknowledged'}
    assert poster.calls == []
    assert pipeline.successes == pipeline.failures == []


def test_handler_initializes_once(monkeypatch, config, poster) -> None:
    calls = []

    def fake_init():
        calls.append(1)
        return config

    monkeypatch.setattr(_handler, 'init', fake_init)
    monkeypatch.setattr(_handler, 'get_logger', lambda name: None)
    monkeypatch.setattr(_handler, 'EventPusher',
                        lambda cfg: EventPusher(cfg, pipeline=FakePipeline(),
                                                post=poster))

    handler(DIRECT_EVENT, LAMBDA_CONTEXT)
    handler(DIRECT_EVENT, LAMBDA_CONTEXT)

    assert len(calls) == 1
    assert len(poster.calls) == 2


def test_initialization_failure_is_fatal(monkeypatch, poster) -> None:
    def failing_init():
        raise InitializationError('no token')

    monkeypatch.setattr(_handler, 'init', failing_init)

    with pytest.raises(InitializationError):
        handler(DIRECT_EVENT, LAMBDA_CONTEXT)

    assert poster.calls == []


def test_bad_tenant_url_fails_the_job(poster) -> None:
    config = DtConfig(api_token=API_TOKEN,
                      tenant_url='abc12345.live.dynatrace.com')
    pipeline = FakePipeline(details=JobContext(pipeline_name='sample-pipeline'))
    pusher = EventPusher(config, pipeline=pipeline)
    params = json.dumps({'attachRules': {'entityIds': ['SERVICE-1']}})

    assert pusher.handle(pipeline_event(params, job_id='job-8')) is None

    (message, job_id), = pipeline.failures
    assert job_id == 'job-8'
    assert message.startswith('Failed to send event to Dynatrace')
    assert pipeline.successes == []


def test_poster_value_error_still_fails_the_job(config,
                                                annotation_job_context):
    pipeline = FakePipeline(details=annotation_job_context)
    poster = RecordingPoster(error=ValueError('Invalid header value'))
    pusher = EventPusher(config, pipeline=pipeline, post=poster)
    params = json.dumps({'attachRules': {'entityIds': ['SERVICE-1']}})

    pusher.handle(pipeline_event(params, job_id='job-10'))

    assert pipeline.failures[0][1] == 'job-10'
    assert 'Invalid header value' in pipeline.failures[0][0]


def test_notification_outcome_is_acknowledged() -> None:
    outcome = EventPusher._acknowledge(AsyncNotification(message='hello'))

    assert outcome.kind is OutcomeKind.ACKNOWLEDGED
    assert outcome.ok
    assert outcome.message == 'Notification acknowledged'


def test_non_object_payload_fails_validation(config, poster) -> None:
    pusher = EventPusher(config, pipeline=FakePipeline(), post=poster)

    with pytest.raises(MissingFieldError) as exc_info:
        pusher.handle(['not', 'an', 'event'])

    assert exc_info.value.field == 'attachRules'
    assert poster.calls == []

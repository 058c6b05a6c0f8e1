import json

import pytest

from dtpush import _api, _handler
from dtpush._models import CodeDeployDetails, DtConfig, JobContext

TENANT_URL = 'https://abc12345.live.dynatrace.com'
API_TOKEN = 'dt0c01.sample-token'

NO_MATCH_BODY = json.dumps({
    'error': {
        'code': 400,
        'message': (
            'Invalid attachRules object provided. No MEIdentifier do match: '
            'Matching rule: PushEventAttachRules{entityIds=null, '
            'tagRules=[TagMatchRule{meTypes=[SERVICE], '
            'tags=[[CONTEXTLESS]DeploymentGroup:Staging]}]}'
        ),
    }
})

MONSPEC = {
    'SampleNodeJsService': {
        'etype': 'SERVICE',
        'name': 'SampleNodeJsService',
        'environments': {
            'Staging': {
                'tags': [{'context': 'CONTEXTLESS',
                          'key': 'DeploymentGroup',
                          'value': 'Staging'}],
            },
            'Production': {
                'tags': [{'context': 'CONTEXTLESS',
                          'key': 'DeploymentGroup',
                          'value': 'Production'}],
            },
        },
    },
}


class FakePipeline:
    """In-memory stand-in for CodePipelineService."""

    def __init__(self, details=None, content=None,
                 details_error=None, download_error=None):
        self.details = details
        self.content = content
        self.details_error = details_error
        self.download_error = download_error
        self.downloads = []
        self.successes = []
        self.failures = []

    def get_job_details(self, job_id):
        if self.details_error is not None:
            raise self.details_error
        return self.details

    def download_file(self, artifact, credentials, override_url=None):
        self.downloads.append((artifact, credentials, override_url))
        if self.download_error is not None:
            raise self.download_error
        return self.content

    def put_job_success(self, message, job_id):
        self.successes.append((message, job_id))

    def put_job_failure(self, message, job_id):
        self.failures.append((message, job_id))


class RecordingPoster:
    """Replaces dt_api_post; remembers every request."""

    def __init__(self, status=200, body='{"storedEventIds":[1]}', error=None):
        self.status = status
        self.body = body
        self.error = error
        self.calls = []

    def __call__(self, url, token, body, *, timeout=None):
        self.calls.append({'url': url, 'token': token, 'body': body})
        if self.error is not None:
            raise self.error
        return self.status, self.body


def pipeline_event(user_parameters, *, job_id='job-1', artifacts=None):
    return {
        'CodePipeline.job': {
            'id': job_id,
            'accountId': '123456789012',
            'data': {
                'actionConfiguration': {
                    'configuration': {
                        'FunctionName': 'pushDynatraceDeploymentEvent',
                        'UserParameters': user_parameters,
                    },
                },
                'inputArtifacts': artifacts or [],
                'outputArtifacts': [],
                'artifactCredentials': {
                    'accessKeyId': 'AKIA-test',
                    'secretAccessKey': 'secret',
                    'sessionToken': 'session',
                },
            },
        },
    }


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ('DT_API_TOKEN', 'DT_TENANT_URL', 'DT_API_TOKEN_PARAM',
                 'DTPUSH_APP', 'DTPUSH_ENV', 'DTPUSH_LOG_LEVEL',
                 'DTPUSH_QUIET_LEVEL', 'DTPUSH_TIMEOUT', 'DTPUSH_CA_BUNDLE'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_globals(monkeypatch):
    monkeypatch.setattr(_api, '_CONFIG', None)
    monkeypatch.setattr(_api, '_HANDLERS', None)
    monkeypatch.setattr(_handler, '_PUSHER', None)


@pytest.fixture
def config():
    return DtConfig(api_token=API_TOKEN, tenant_url=TENANT_URL)


@pytest.fixture
def poster():
    return RecordingPoster()


@pytest.fixture
def annotation_job_context():
    return JobContext(pipeline_name='sample-pipeline',
                      stage='Staging',
                      action='PushDynatraceEvent')


@pytest.fixture
def deployment_job_context():
    return JobContext(
        pipeline_name='sample-pipeline',
        stage='Production',
        action='PushDynatraceEvent',
        codedeploy=CodeDeployDetails(deployment_id='d-96V3B7QKP',
                                     deployment_group='Production',
                                     application='HelloWorld'),
    )

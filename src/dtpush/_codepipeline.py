from __future__ import annotations

import posixpath
import zipfile
from io import BytesIO
from typing import Any, Callable

import boto3
from botocore.config import Config as BotoConfig

from ._constants import CODEDEPLOY_PROVIDER, MONSPEC_FILE_NAME
from ._errors import LookupFailure
from ._log import LOG
from ._models import CodeDeployDetails, JobContext
from ._requests import http_get_text

# CodePipeline API limits
_MAX_SUMMARY_LEN = 2048
_MAX_FAILURE_LEN = 5000


def _s3_client(credentials: dict[str, Any] | None):
    # artifact buckets are KMS encrypted, which requires SigV4
    config = BotoConfig(signature_version='s3v4')
    if not credentials:
        return boto3.client('s3', config=config)
    return boto3.client(
        's3',
        aws_access_key_id=credentials['accessKeyId'],
        aws_secret_access_key=credentials['secretAccessKey'],
        aws_session_token=credentials.get('sessionToken'),
        config=config,
    )


def read_monspec_from_zip(data: bytes) -> str:
    """Pull the monspec file out of a zipped CodePipeline artifact."""
    try:
        archive = zipfile.ZipFile(BytesIO(data))
    except zipfile.BadZipFile as e:
        raise LookupFailure(f'input artifact is not a zip file: {e}') from e

    with archive:
        names = [n for n in archive.namelist() if not n.endswith('/')]
        matches = [n for n in names
                   if posixpath.basename(n) == MONSPEC_FILE_NAME]
        if matches:
            name = min(matches, key=len)
        elif len(names) == 1:
            name = names[0]
        else:
            raise LookupFailure(
                f'{MONSPEC_FILE_NAME} not found in input artifact')

        return archive.read(name).decode('utf-8')


class CodePipelineService:
    """
    Job details, artifacts and job results from AWS CodePipeline.

    boto3 clients are created on first use, so a Lambda invoked directly
    (not from a pipeline) never builds them.
    """
    __slots__ = (
        '_codepipeline',
        '_codedeploy',
        '_s3_factory',
        '_http_get',
    )

    def __init__(
        self,
        *,
        codepipeline=None,
        codedeploy=None,
        s3_factory: Callable[[dict[str, Any] | None], Any] = _s3_client,
        http_get: Callable[[str], str] = http_get_text,
    ):
        self._codepipeline = codepipeline
        self._codedeploy = codedeploy
        self._s3_factory = s3_factory
        self._http_get = http_get

    @property
    def codepipeline(self):
        if self._codepipeline is None:
            self._codepipeline = boto3.client('codepipeline')
        return self._codepipeline

    @property
    def codedeploy(self):
        if self._codedeploy is None:
            self._codedeploy = boto3.client('codedeploy')
        return self._codedeploy

    def get_job_details(self, job_id: str) -> JobContext:
        resp = self.codepipeline.get_job_details(jobId=job_id)
        ctx = resp['jobDetails']['data']['pipelineContext']
        pipeline_name = ctx['pipelineName']

        return JobContext(
            pipeline_name=pipeline_name,
            stage=(ctx.get('stage') or {}).get('name'),
            action=(ctx.get('action') or {}).get('name'),
            codedeploy=self._codedeploy_details(
                pipeline_name, ctx.get('pipelineExecutionId')),
        )

    def _codedeploy_details(self,
                            pipeline_name: str,
                            execution_id: str | None = None,
                            ) -> CodeDeployDetails | None:
        pipeline = self.codepipeline.get_pipeline(name=pipeline_name)['pipeline']
        deploy_actions = {
            (stage['name'], action['name'])
            for stage in pipeline.get('stages', [])
            for action in stage.get('actions', [])
            if action['actionTypeId'].get('provider') == CODEDEPLOY_PROVIDER
        }
        if not deploy_actions:
            return None

        state = self.codepipeline.get_pipeline_state(name=pipeline_name)
        for stage in state.get('stageStates', []):
            # a stage last run by another execution holds a stale deployment
            stage_run = (stage.get('latestExecution') or {}).get(
                'pipelineExecutionId')
            if execution_id and stage_run != execution_id:
                continue

            for action in stage.get('actionStates', []):
                if (stage['stageName'], action['actionName']) not in deploy_actions:
                    continue

                execution = action.get('latestExecution') or {}
                deployment_id = execution.get('externalExecutionId')
                if not deployment_id:
                    continue

                info = self.codedeploy.get_deployment(
                    deploymentId=deployment_id)['deploymentInfo']
                LOG.debug('CodeDeploy: found deployment %s for pipeline %s',
                          deployment_id, pipeline_name)

                return CodeDeployDetails(
                    deployment_id=deployment_id,
                    deployment_group=info.get('deploymentGroupName'),
                    application=info.get('applicationName'),
                )

        return None

    def download_file(self,
                      artifact: dict[str, Any],
                      credentials: dict[str, Any] | None,
                      override_url: str | None = None) -> str:
        if override_url:
            LOG.debug('monspec: fetching %s', override_url)
            return self._http_get(override_url)

        loc = artifact['location']['s3Location']
        s3 = self._s3_factory(credentials)
        obj = s3.get_object(Bucket=loc['bucketName'], Key=loc['objectKey'])

        return read_monspec_from_zip(obj['Body'].read())

    def put_job_success(self, message: str, job_id: str) -> None:
        self.codepipeline.put_job_success_result(
            jobId=job_id,
            executionDetails={'summary': message[:_MAX_SUMMARY_LEN]},
        )

    def put_job_failure(self, message: str, job_id: str) -> None:
        self.codepipeline.put_job_failure_result(
            jobId=job_id,
            failureDetails={
                'type': 'JobFailed',
                'message': message[:_MAX_FAILURE_LEN],
            },
        )

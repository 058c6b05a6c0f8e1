from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from ._constants import DEPLOYMENT_CREATED_STATUS

CODEPIPELINE_JOB_KEY = 'CodePipeline.job'


@dataclass(frozen=True, slots=True)
class PipelineJob:
    job_id: str
    # raw `UserParameters` text (objects are serialized back to JSON)
    user_parameters: str
    input_artifacts: list[dict[str, Any]] = field(default_factory=list)
    artifact_credentials: dict[str, Any] | None = None

    @property
    def first_artifact(self) -> dict[str, Any] | None:
        return self.input_artifacts[0] if self.input_artifacts else None


@dataclass(frozen=True, slots=True)
class AsyncNotification:
    # `Records[0].Sns.Message`
    message: str

    def deployment_created(self) -> dict[str, Any] | None:
        """
        Return the CodeDeploy notification if it reports a newly created
        deployment, else None.
        """
        if not self.message.startswith('{'):
            return None
        try:
            data = json.loads(self.message)
        except ValueError:
            return None
        if (isinstance(data, dict)
                and data.get('deploymentId')
                and data.get('status') == DEPLOYMENT_CREATED_STATUS):
            return data
        return None


@dataclass(frozen=True, slots=True)
class DirectCall:
    # normally a JSON object; anything else fails validation downstream
    body: Any


Invocation = Union[PipelineJob, AsyncNotification, DirectCall]


def _user_parameters(job: dict[str, Any]) -> str:
    cfg = (((job.get('data') or {})
            .get('actionConfiguration') or {})
           .get('configuration') or {})
    value = cfg.get('UserParameters')
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    return json.dumps(value)


def classify(payload: Any) -> Invocation:
    """
    Decide which of the three supported shapes ``payload`` is.

    Anything that is neither a CodePipeline job nor an SNS batch is
    treated as a direct call.
    """
    if not isinstance(payload, dict):
        return DirectCall(body=payload)

    job = payload.get(CODEPIPELINE_JOB_KEY)
    if job:
        data = job.get('data') or {}
        return PipelineJob(
            job_id=job['id'],
            user_parameters=_user_parameters(job),
            input_artifacts=list(data.get('inputArtifacts') or []),
            artifact_credentials=data.get('artifactCredentials'),
        )

    records = payload.get('Records')
    if isinstance(records, list) and records and isinstance(records[0], dict):
        sns = records[0].get('Sns') or {}
        if not isinstance(sns, dict):
            sns = {}
        return AsyncNotification(message=sns.get('Message') or '')

    body = payload.get('eventBody')
    return DirectCall(body=body if body else payload)

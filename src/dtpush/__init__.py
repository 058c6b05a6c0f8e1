"""Top-level package for dtpush."""
from __future__ import annotations

__all__ = [
    # Lambda entry point
    'handler',
    'EventPusher',
    'init',
    'setup',
    'get_logger',
    # Models
    'DtConfig',
    'EventRecord',
    'EventType',
    'JobContext',
    'CodeDeployDetails',
    'Outcome',
    'OutcomeKind',
    # Pipeline
    'classify',
    'normalize_direct_call',
    'normalize_pipeline_job',
    'submit',
    'CodePipelineService',
    'get_all_tag_rules',
    # Errors
    'DtPushError',
    'InitializationError',
    'LookupFailure',
    'MissingFieldError',
    'NoMatchingEntitiesError',
    'ParameterError',
    'SubmissionFailedError',
]

from logging import NullHandler

from ._api import init, setup, get_logger
from ._codepipeline import CodePipelineService
from ._errors import (DtPushError,
                      InitializationError,
                      LookupFailure,
                      MissingFieldError,
                      NoMatchingEntitiesError,
                      ParameterError,
                      SubmissionFailedError)
from ._handler import EventPusher, handler
from ._invocation import classify
from ._log import LOG
from ._models import (CodeDeployDetails,
                      DtConfig,
                      EventRecord,
                      EventType,
                      JobContext,
                      Outcome,
                      OutcomeKind)
from ._monspec import get_all_tag_rules
from ._normalizer import normalize_direct_call, normalize_pipeline_job
from ._submit import submit

# Set up logging to ``/dev/null`` like a library is supposed to.
# http://docs.python.org/3.3/howto/logging.html#configuring-logging-for-a-library
LOG.addHandler(NullHandler())


def version():
    from importlib.metadata import version
    __version__ = version('dtpush')
    return __version__

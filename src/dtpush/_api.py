from __future__ import annotations

from logging import Formatter, Handler, Logger, StreamHandler, getLogger

import boto3

from ._errors import InitializationError
from ._integrations import DtPushJSONFormatter, RuntimeContextFilter
from ._log import LOG, quiet_third_party_logs
from ._models import DtConfig

_CONFIG: DtConfig | None = None
_HANDLERS: list[Handler] | None = None


def _read_ssm_parameter(name: str, ssm=None) -> str:
    ssm = ssm or boto3.client('ssm')
    try:
        resp = ssm.get_parameter(Name=name, WithDecryption=True)
    except Exception as e:
        raise InitializationError(
            f"Can't read Dynatrace API token from SSM parameter {name}: {e}"
        ) from e
    return resp['Parameter']['Value']


def setup(config: DtConfig | None = None,
          *,
          formatter: type[Formatter] = DtPushJSONFormatter,
          reset: bool = False,
          logger_name: str | None = 'dtpush',
          configure_root: bool = False) -> Logger:

    init(config, formatter=formatter, reset=reset)
    return get_logger(logger_name, configure_root)


def init(config: DtConfig | None = None,
         *,
         formatter: type[Formatter] = DtPushJSONFormatter,
         reset: bool = False,
         ssm=None) -> DtConfig:
    """
    Resolve the process-wide configuration (env vars, then SSM for the
    API token) and prepare log handlers.

    :raises InitializationError: if the API token can't be resolved
    """
    global _CONFIG, _HANDLERS

    # Skip on Lambda warm start
    if _CONFIG is not None and not reset:
        return _CONFIG

    config = (DtConfig.from_env()
              if config is None
              else config.with_env_defaults())

    if config.quiet_level is not None:
        quiet_third_party_logs(config.quiet_level)

    handler = StreamHandler()
    handler.setFormatter(formatter())
    handler.addFilter(RuntimeContextFilter(app=config.app, env=config.env))
    handler.setLevel(config.log_level)

    _HANDLERS = [handler]

    if not config.api_token and config.api_token_param:
        LOG.debug('SSM: reading API token from %s', config.api_token_param)
        config.api_token = _read_ssm_parameter(config.api_token_param, ssm)

    _CONFIG = config
    return config


def get_logger(name: str | None = 'dtpush',
               configure_root: bool = False) -> Logger:
    """
    JSON formatter + handler once
    """
    if _HANDLERS is None or _CONFIG is None:
        raise RuntimeError('dtpush.init() must be called '
                           'before dtpush.get_logger()')

    if name is None and not configure_root:
        raise RuntimeError('Refusing to mutate root logger '
                           'formatting until configure_root=True')

    log = getLogger(name)

    for handler in _HANDLERS:
        if handler not in log.handlers:
            log.addHandler(handler)

    log.setLevel(_CONFIG.log_level)
    log.propagate = False

    return log

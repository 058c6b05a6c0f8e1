from __future__ import annotations

import logging
from json import dumps
from logging import Formatter, LogRecord

from .._runtime import get_runtime_context


class RuntimeContextFilter(logging.Filter):

    def __init__(self, app: str | None = None, env: str | None = None):
        super().__init__()
        self.app = app
        self.env = env

    def filter(self, record: logging.LogRecord) -> bool:
        # Attach for formatters/handlers
        record.dtpush_rt = get_runtime_context()
        record.dtpush_app = self.app
        record.dtpush_env = self.env
        return True


class DtPushJSONFormatter(Formatter):
    """One JSON object per line, as CloudWatch Logs Insights likes it."""

    def format(self, record: LogRecord) -> str:
        base = {
            'ts': record.created,
            'fn': record.funcName,
            'file': record.filename,
            'lineno': record.lineno,
            'level': record.levelname.lower(),
            'msg': record.getMessage(),
            'logger': record.name,
        }
        for key in ('app', 'env'):
            value = getattr(record, f'dtpush_{key}', None)
            if value:
                base[key] = value

        rt = getattr(record, 'dtpush_rt', None)
        if rt is not None:
            base.update(rt.as_log_fields())
        if record.stack_info:
            base['stack'] = record.stack_info

        extra = getattr(record, 'dtpush', None)
        if extra:
            base['dtpush'] = extra
        if record.exc_info:
            base['exc'] = self.formatException(record.exc_info)

        return dumps(base, ensure_ascii=False, default=str)

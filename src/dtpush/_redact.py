from __future__ import annotations

import re
from typing import Any

DEFAULT_SENSITIVE_KEYS = frozenset({
    'token',
    'dtapitoken',
    'api_token',
    'apitoken',
    'access_token',
    'auth',
    'authorization',
    'password',
    'secret',
    'secret_key',
    'api_key',
    'x-api-key',
    'cookie',
    'session',
    'accesskeyid',
    'secretaccesskey',
    'sessiontoken',
    'aws_access_key_id',
    'aws_secret_access_key',
    'aws_session_token',
})

# `Bearer xyz` as well as Dynatrace's `Api-Token xyz`
CREDENTIAL_RE = re.compile(r'(?i)\b(Bearer|Api-Token)\s+[A-Za-z0-9\-_.=]+')


def redact(value: Any,
           *,
           sensitive_keys: object = DEFAULT_SENSITIVE_KEYS,
           max_len: int = 4000) -> Any:

    # skip "falsy" values
    if not value:
        return value

    # string
    if isinstance(value, str):
        s = CREDENTIAL_RE.sub(r'\1 [REDACTED]', value)
        if len(s) > max_len:
            return s[:max_len] + '…[TRUNCATED]'
        return s

    # dict
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if str(k).lower() in sensitive_keys:
                out[k] = '[REDACTED]'
            else:
                out[k] = redact(
                    v,
                    sensitive_keys=sensitive_keys,
                    max_len=max_len,
                )
        return out

    # list/tuple
    if isinstance(value, (list, tuple)):
        return [redact(v, sensitive_keys=sensitive_keys, max_len=max_len)
                for v in value]

    # other scalars
    return value

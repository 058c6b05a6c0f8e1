"""HTTP utilities for talking to the Dynatrace API."""
from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from os import getenv
from typing import Any

from ._constants import DEFAULT_TIMEOUT_S, ENV_CA_BUNDLE


def _ssl_context_from_env():
    cafile = getenv(ENV_CA_BUNDLE) or getenv('SSL_CERT_FILE')
    if cafile:
        ctx = ssl.create_default_context(cafile=cafile)
        return ctx
    return None


def http_get_text(url: str, *, timeout: float = DEFAULT_TIMEOUT_S) -> str:
    req = urllib.request.Request(url, method='GET')

    with urllib.request.urlopen(req, timeout=timeout,
                                context=_ssl_context_from_env()) as resp:
        return resp.read().decode('utf-8')


def dt_api_post(url: str,
                token: str,
                body: dict[str, Any],
                *,
                timeout: float = DEFAULT_TIMEOUT_S) -> tuple[int, str]:
    """
    POST a JSON body to the Dynatrace API.

    :param url: full endpoint URL, e.g. ``<tenant>/api/v1/events``
    :param token: Dynatrace API token, sent as ``Api-Token`` credential
    :param body: JSON-serializable payload
    :return: ``(status_code, raw_body)``; HTTP error statuses are returned,
             not raised
    :raises URLError: if the request fails at the network level
    """
    data = json.dumps(body).encode('utf-8')

    req = urllib.request.Request(
        url,
        method='POST',
        data=data,
        headers={
            'Content-Type': 'application/json',
            'Authorization': f'Api-Token {token}',
        },
    )

    try:
        with urllib.request.urlopen(req, timeout=timeout,
                                    context=_ssl_context_from_env()) as resp:
            return resp.status, resp.read().decode('utf-8', errors='replace')
    except urllib.error.HTTPError as e:
        return e.code, e.read().decode('utf-8', errors='replace')

"""
Tag rules from a monspec (monitoring specification) file.

A monspec maps each service to the Dynatrace entity type it is monitored as
and, per environment, the tags that identify it::

    {
      "SampleNodeJsService": {
        "etype": "SERVICE",
        "environments": {
          "Staging": {
            "tags": [{"context": "CONTEXTLESS",
                      "key": "DeploymentGroup",
                      "value": "Staging"}]
          }
        }
      }
    }
"""
from __future__ import annotations

import json
from typing import Any

from ._errors import LookupFailure

DEFAULT_ENTITY_TYPE = 'SERVICE'


def parse_monspec(content: str) -> dict[str, Any]:
    try:
        monspec = json.loads(content)
    except ValueError as e:
        raise LookupFailure(f'monspec is not valid JSON: {e}') from e

    if not isinstance(monspec, dict):
        raise LookupFailure('monspec must be a JSON object')

    return monspec


def get_all_tag_rules(monspec: dict[str, Any],
                      environment_name: str | None) -> list[dict[str, Any]]:
    """
    Dynatrace `tagRule` entries for every service that defines tags in
    ``environment_name``.
    """
    if not environment_name:
        return []

    rules = []
    for entry in monspec.values():
        if not isinstance(entry, dict):
            continue
        env = (entry.get('environments') or {}).get(environment_name) or {}
        tags = env.get('tags')
        if not tags:
            continue
        rules.append({
            'meTypes': [entry.get('etype') or DEFAULT_ENTITY_TYPE],
            'tags': list(tags),
        })

    return rules

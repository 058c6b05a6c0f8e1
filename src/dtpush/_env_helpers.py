from __future__ import annotations

import logging


def parse_level(v: str | None, *, default: int) -> int:
    if not v:
        return default
    s = v.strip().upper()
    if s.isdigit():
        return int(s)
    # noinspection PyUnresolvedReferences,PyProtectedMember
    return logging._nameToLevel.get(s, default)


def parse_quiet(v: str | int | None, *, default_level: int) -> int | None:
    if v is None:
        return default_level

    if isinstance(v, int):
        return v

    s = v.strip().upper()

    if s in ('0', 'FALSE', 'NO', 'OFF', 'NONE', 'DISABLE'):
        return None

    if s.isdigit():
        return int(s)

    # noinspection PyUnresolvedReferences,PyProtectedMember
    lvl = logging._nameToLevel.get(s)

    if lvl is not None:
        return lvl

    return default_level


def parse_float(v: str | None, *, default: float) -> float:
    if not v:
        return default
    try:
        return float(v.strip())
    except ValueError:
        return default

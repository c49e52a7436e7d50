"""Schedule resolver - placeholder interpolation for schedule expressions.

A declared schedule may be a literal cron expression or may defer to
configuration::

    "0 0/1 * * * ?"                      literal, returned unchanged
    "${job3.cron:0 0/5 * * * ?}"         value of job3.cron, else the default
    "${job3.cron}"                       value of job3.cron, else ConfigurationError
    "0 ${report.minute:15} 6 * * ?"      placeholders may be embedded

The default is everything after the first ``:`` up to the closing brace,
so cron characters (``? / * ,`` and spaces) are allowed in it.

Config sources only need ``lookup(key) -> str | None``; the environment
source also accepts the relaxed form of a dotted key (``job3.cron`` is
found as ``JOB3_CRON``).
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from jobspine.errors import ConfigurationError

PLACEHOLDER_PREFIX = "${"
_PLACEHOLDER_RE = re.compile(r"\$\{(?P<key>[^}:]+)(?::(?P<default>[^}]*))?\}")
_EMPTY_KEY_RE = re.compile(r"\$\{\s*(?::[^}]*)?\}")


@runtime_checkable
class ConfigSource(Protocol):
    """Key/value configuration consulted for placeholders."""

    def lookup(self, key: str) -> str | None:
        """Return the bound value for *key*, or None when absent."""
        ...


class MappingConfigSource:
    """Config source backed by a plain mapping."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = dict(values or {})

    def lookup(self, key: str) -> str | None:
        value = self._values.get(key)
        return None if value is None else str(value)


class EnvironmentConfigSource:
    """Config source backed by process environment variables.

    Tries the key verbatim first, then its relaxed form: dots and dashes
    become underscores and the result is upper-cased.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    @staticmethod
    def relaxed(key: str) -> str:
        return re.sub(r"[.\-]", "_", key).upper()

    def lookup(self, key: str) -> str | None:
        if key in self._environ:
            return self._environ[key]
        return self._environ.get(self.relaxed(key))


class ChainedConfigSource:
    """First source with a value wins."""

    def __init__(self, *sources: ConfigSource) -> None:
        self.sources = list(sources)

    def lookup(self, key: str) -> str | None:
        for source in self.sources:
            value = source.lookup(key)
            if value is not None:
                return value
        return None


@dataclass(frozen=True)
class ResolvedSchedule:
    """A fully interpolated cron-like expression."""

    expression: str

    def __str__(self) -> str:
        return self.expression


Lookup = Callable[[str], str | None]


def resolve_schedule(raw: str, config: ConfigSource | Lookup) -> ResolvedSchedule:
    """Interpolate every ``${key[:default]}`` placeholder in *raw*.

    Args:
        raw: Declared schedule expression
        config: A ConfigSource or a bare ``lookup(key)`` callable

    Returns:
        ResolvedSchedule with the final expression

    Raises:
        ConfigurationError: A placeholder has no bound value and no default,
            a placeholder has an empty key, or a placeholder is not terminated.
    """
    lookup = config.lookup if isinstance(config, ConfigSource) else config

    def _substitute(match: re.Match[str]) -> str:
        key = match.group("key").strip()
        value = lookup(key)
        if value is not None:
            return value
        default = match.group("default")
        if default is None:
            raise ConfigurationError(
                f"Could not resolve placeholder '{key}' in schedule expression"
            ).with_context(expression=raw, key=key)
        return default

    if _EMPTY_KEY_RE.search(raw):
        raise ConfigurationError("Placeholder with an empty key in schedule expression").with_context(
            expression=raw
        )
    if PLACEHOLDER_PREFIX in _PLACEHOLDER_RE.sub("", raw):
        raise ConfigurationError("Unterminated placeholder in schedule expression").with_context(
            expression=raw
        )
    resolved = _PLACEHOLDER_RE.sub(_substitute, raw)
    return ResolvedSchedule(resolved.strip())

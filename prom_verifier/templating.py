"""Annotation template rendering.

Annotations follow the Prometheus alerting convention: a template refers to
the series labels as ``{{ $labels.job }}`` and to the latest sample value as
``{{ $value }}``. Templates are rendered with a sandboxed Jinja2 environment,
so only variable lookup and the registered filters are available.

Every annotation is rendered on its own. A syntax error becomes
``<template_error: ...>`` and a failure while rendering becomes
``<render_error: ...>`` for that key only.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Mapping

from jinja2 import TemplateSyntaxError
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"(\{\{.*?\}\}|\{%.*?%\})", re.DOTALL)
# String literals are matched first so a quoted "$value" stays literal.
_VAR_RE = re.compile(
    r"""('(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")|\$(labels|value)\b"""
)

_LARGE_PREFIXES = ("k", "M", "G", "T", "P", "E", "Z", "Y")
_SMALL_PREFIXES = ("m", "u", "n", "p", "f", "a", "z", "y")


class LabelSet(dict):
    """Label mapping where ``labels.name`` always means the label ``name``."""


def format_value(value: float) -> str:
    """Format a sample value the way Go prints a float64.

    Example:
        >>> format_value(1.0)
        '1'
        >>> format_value(float("inf"))
        '+Inf'
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _g4(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        return format_value(value)
    return f"{value:.4g}"


def humanize(value: Any) -> str:
    v = float(value)
    if v == 0 or math.isnan(v) or math.isinf(v):
        return _g4(v)
    prefix = ""
    if abs(v) >= 1:
        for p in _LARGE_PREFIXES:
            if abs(v) < 1000:
                break
            prefix = p
            v /= 1000
        return f"{_g4(v)}{prefix}"
    for p in _SMALL_PREFIXES:
        if abs(v) >= 1:
            break
        prefix = p
        v *= 1000
    return f"{_g4(v)}{prefix}"


def humanize_duration(value: Any) -> str:
    v = float(value)
    if math.isnan(v) or math.isinf(v):
        return _g4(v)
    if v == 0:
        return "0s"
    if abs(v) >= 1:
        sign = "-" if v < 0 else ""
        v = abs(v)
        whole = int(v)
        seconds = whole % 60
        minutes = (whole // 60) % 60
        hours = (whole // 3600) % 24
        days = whole // 86400
        if days:
            return f"{sign}{days}d {hours}h {minutes}m {seconds}s"
        if hours:
            return f"{sign}{hours}h {minutes}m {seconds}s"
        if minutes:
            return f"{sign}{minutes}m {seconds}s"
        return f"{sign}{_g4(v)}s"
    prefix = ""
    for p in _SMALL_PREFIXES:
        if abs(v) >= 1:
            break
        prefix = p
        v *= 1000
    return f"{_g4(v)}{prefix}s"


def humanize_percentage(value: Any) -> str:
    return f"{_g4(float(value) * 100)}%"


def _finalize(value: Any) -> Any:
    if isinstance(value, float):
        return format_value(value)
    return value


class AlertTemplateEnvironment(SandboxedEnvironment):
    """Sandboxed environment where label lookups never hit dict methods."""

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, LabelSet):
            return self._label(obj, attribute)
        return super().getattr(obj, attribute)

    def getitem(self, obj: Any, argument: Any) -> Any:
        if isinstance(obj, LabelSet):
            return self._label(obj, argument)
        return super().getitem(obj, argument)

    def _label(self, labels: LabelSet, name: Any) -> Any:
        if name in labels:
            return labels[name]
        return self.undefined(obj=labels, name=name)


def _build_environment() -> AlertTemplateEnvironment:
    env = AlertTemplateEnvironment(
        autoescape=False,
        keep_trailing_newline=True,
        finalize=_finalize,
    )
    env.filters["humanize"] = humanize
    env.filters["humanizeDuration"] = humanize_duration
    env.filters["humanizePercentage"] = humanize_percentage
    return env


_ENV = _build_environment()


def _rewrite_vars(text: str) -> str:
    """Turn ``$labels``/``$value`` into plain names inside template tags."""

    def _swap(match: re.Match) -> str:
        if match.group(1) is not None:
            return match.group(1)
        return match.group(2)

    return _TAG_RE.sub(lambda m: _VAR_RE.sub(_swap, m.group(0)), text)


def render_annotations(
    templates: Mapping[str, str] | None,
    labels: Mapping[str, str] | None,
    value: float,
) -> dict[str, str]:
    """Render each annotation template against ``labels`` and ``value``.

    Args:
        templates: annotation name -> raw template text
        labels: label set of the series
        value: latest sample value of the series

    Returns:
        annotation name -> rendered text, one entry per template. Unknown
        labels render as empty strings.
    """
    context = {"labels": LabelSet(labels or {}), "value": float(value)}
    rendered: dict[str, str] = {}
    for name, text in (templates or {}).items():
        try:
            template = _ENV.from_string(_rewrite_vars(str(text)))
        except TemplateSyntaxError as exc:
            logger.debug("Annotation %s failed to parse: %s", name, exc)
            rendered[name] = f"<template_error: {exc}>"
            continue
        try:
            rendered[name] = template.render(context)
        except Exception as exc:
            logger.debug("Annotation %s failed to render: %s", name, exc)
            rendered[name] = f"<render_error: {exc}>"
    return rendered

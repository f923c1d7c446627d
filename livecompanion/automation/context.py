# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Field lookup and ``{placeholder}`` interpolation."""

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

TOKEN_PATTERN = re.compile(r"\{([A-Za-z_][\w.]*)\}")

_MISSING = object()


def _lookup(source: Any, path: str) -> Any:
    current = source
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
    return current


def _clock_tokens() -> dict[str, str]:
    now = datetime.now()
    return {
        "timestamp": now.isoformat(timespec="seconds"),
        "date": now.strftime("%Y-%m-%d"),
        "time": now.strftime("%H:%M:%S"),
    }


class EvaluationContext:
    """Layered read-only view used by conditions and templates.

    Dotted paths are resolved against the layers in order: event payload,
    then variables, then named extras such as ``stream``. The clock tokens
    ``timestamp``, ``date`` and ``time`` are the last fallback.
    """

    def __init__(
        self,
        event: Mapping[str, Any] | None = None,
        variables: Mapping[str, Any] | None = None,
        extras: Mapping[str, Any] | None = None,
    ) -> None:
        self.event = dict(event or {})
        self.variables = dict(variables or {})
        self.extras = dict(extras or {})

    def resolve(self, path: str) -> tuple[bool, Any]:
        """Look up a dotted path.

        Returns:
            ``(found, value)``
        """
        for layer in (self.event, self.variables, self.extras):
            value = _lookup(layer, path)
            if value is not _MISSING:
                return True, value

        clock = _clock_tokens()
        if path in clock:
            return True, clock[path]
        return False, None

    def render(self, template: str) -> Any:
        """Replace ``{field}`` tokens with their values.

        Unknown tokens are left untouched. A template that is exactly one
        token yields the raw value so numbers keep their type.
        """
        whole = TOKEN_PATTERN.fullmatch(template)
        if whole:
            found, value = self.resolve(whole.group(1))
            return value if found else template

        def replace(match: re.Match) -> str:
            found, value = self.resolve(match.group(1))
            if not found:
                return match.group(0)
            if isinstance(value, bool):
                return "true" if value else "false"
            return "" if value is None else str(value)

        return TOKEN_PATTERN.sub(replace, template)

    def render_value(self, value: Any) -> Any:
        """Render strings inside arbitrarily nested params."""
        if isinstance(value, str):
            return self.render(value)
        if isinstance(value, dict):
            return {k: self.render_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.render_value(v) for v in value]
        return value

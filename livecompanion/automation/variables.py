# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Process-wide variables shared by all flows."""

import logging
from datetime import datetime
from typing import Any

from livecompanion.automation.models import Variable
from livecompanion.errors import ActionExecutionError

logger = logging.getLogger(__name__)


class VariableStore:
    """Named values readable by conditions and templates.

    Writes are last-write-wins; there is no locking between flows.
    """

    def __init__(self) -> None:
        self._variables: dict[str, Variable] = {}

    def get(self, name: str, default: Any = None) -> Any:
        variable = self._variables.get(name)
        return default if variable is None else variable.value

    def set(self, name: str, value: Any) -> Variable:
        variable = Variable(name=name, value=value)
        self._variables[name] = variable
        logger.debug(f"Variable {name} = {value!r}")
        return variable

    def increment(self, name: str, amount: int | float = 1) -> Variable:
        """Add to a numeric variable; a missing variable starts at 0.

        Raises:
            ActionExecutionError: If the current value is not numeric
        """
        current = self.get(name, 0)
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            try:
                current = float(current)
            except (TypeError, ValueError) as e:
                raise ActionExecutionError(
                    f"Variable {name} is not numeric: {current!r}"
                ) from e
            if current.is_integer():
                current = int(current)
        return self.set(name, current + amount)

    def delete(self, name: str) -> bool:
        return self._variables.pop(name, None) is not None

    def clear(self) -> None:
        self._variables.clear()

    def all(self) -> list[Variable]:
        return sorted(self._variables.values(), key=lambda v: v.name)

    def as_dict(self) -> dict[str, Any]:
        return {name: v.value for name, v in self._variables.items()}

    def last_updated(self, name: str) -> datetime | None:
        variable = self._variables.get(name)
        return variable.updated_at if variable else None

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    def __len__(self) -> int:
        return len(self._variables)

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Protocol

from .models import Variable


class VariableDataPort(Protocol):
    """Resolves stored variable values over a caller-supplied variable list."""

    def find_variable(
        self, variable_id: str, variables: Sequence[Variable]
    ) -> Variable | None: ...

    def get_variable_value_for_month(
        self,
        variable_id: str,
        target_date: date | datetime,
        variables: Sequence[Variable],
    ) -> float | None: ...

    def get_variable_value_with_offset(
        self,
        variable_id: str,
        target_date: date | datetime,
        offset_months: int,
        variables: Sequence[Variable],
    ) -> float | None: ...

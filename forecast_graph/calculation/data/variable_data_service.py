from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime

from forecast_graph.calculation.domain.calendar import add_months, first_of_month
from forecast_graph.calculation.domain.models import Variable


class VariableDataService:
    """In-memory lookup over the variable list supplied with a request.

    Matching is exact on the calendar month; there is no nearest-date
    fallback. The list is never modified.
    """

    def find_variable(
        self, variable_id: str, variables: Sequence[Variable]
    ) -> Variable | None:
        for variable in variables:
            if variable.id == variable_id:
                return variable
        return None

    def get_variable_value_for_month(
        self,
        variable_id: str,
        target_date: date | datetime,
        variables: Sequence[Variable],
    ) -> float | None:
        variable = self.find_variable(variable_id, variables)
        if variable is None:
            return None
        target_month = first_of_month(target_date)
        for point in variable.time_series:
            if first_of_month(point.date) == target_month:
                return point.value
        return None

    def get_variable_value_with_offset(
        self,
        variable_id: str,
        target_date: date | datetime,
        offset_months: int,
        variables: Sequence[Variable],
    ) -> float | None:
        shifted = add_months(first_of_month(target_date), offset_months)
        return self.get_variable_value_for_month(variable_id, shifted, variables)

"""Income projection package."""

from recurring_income.queries.projection import IncomeProjector, ProjectionError

__all__ = ["IncomeProjector", "ProjectionError"]

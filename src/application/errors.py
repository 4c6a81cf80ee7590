from __future__ import annotations


class FetchFailedError(RuntimeError):
    """A fetch was abandoned because one of its queries failed after retries."""


class UnauthenticatedError(PermissionError):
    pass


class CategoryHierarchyError(ValueError):
    """Category parent links break the one-level nesting rule."""


class BudgetScopeError(ValueError):
    pass

"""Exception types raised by the planning engine."""

from __future__ import annotations


class PlanInvariantError(RuntimeError):
    """Raised when the curriculum data or the analysis reaches an inconsistent state.

    These are defects, not user errors: the analysis pass is aborted rather than
    continuing with a plan that no longer means anything.
    """


class CatalogError(ValueError):
    """Raised when a catalog document cannot be turned into content."""


__all__ = ["CatalogError", "PlanInvariantError"]

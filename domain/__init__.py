"""Coverage Map Domain Layer.

This package contains the core business logic organized by bounded contexts:
- coverage: Investor coverage areas, geometry validation, drawing flow
- mapping: Map bootstrap, layer synchronization, mount orchestration
- usage: Monthly quota accounting for the metered map service
"""

# Imports alphabetized per project style (isort)
from domain import coverage, mapping, usage

__all__ = ["coverage", "mapping", "usage"]

"""Infrastructure adapters for the coverage bounded context.

SQLAlchemy implementation of the CoverageAreaRepository port.
"""

from .sql_repository import SqlCoverageAreaRepository

__all__ = ["SqlCoverageAreaRepository"]

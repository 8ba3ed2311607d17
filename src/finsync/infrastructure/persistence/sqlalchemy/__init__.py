"""SQLAlchemy persistence: models, consistency router, repositories."""

from finsync.infrastructure.persistence.sqlalchemy.database_router import (
    DatabaseRouter,
    LocalityRule,
    Operation,
    RouteTarget,
    build_engine,
)

__all__ = [
    "DatabaseRouter",
    "LocalityRule",
    "Operation",
    "RouteTarget",
    "build_engine",
]

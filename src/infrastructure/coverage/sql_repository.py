"""SQLAlchemy adapter for CoverageAreaRepository.

Stores coverage areas in a ``coverage_areas`` table with the raw GeoJSON in
a JSON column, and investors in an ``investors`` table. Works against SQLite
for local use and any SQLAlchemy URL for a hosted database.

Rows are returned as immutable CoverageArea value objects; geometry is NOT
validated on read so broken rows can still be listed, renamed or deleted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Engine, Integer, String, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from domain.coverage.value_objects import AreaType, CoverageArea, Investor

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip; stored values are always UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class CoverageAreaRow(Base):
    __tablename__ = "coverage_areas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    investor_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    area_name: Mapped[str] = mapped_column(String(255), nullable=False)
    area_type: Mapped[str] = mapped_column(String(16), nullable=False, default="polygon")
    geojson_data: Mapped[Any] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_domain(self) -> CoverageArea:
        return CoverageArea(
            id=self.id,
            owner_id=self.investor_id,
            name=self.area_name,
            geometry=self.geojson_data,
            area_type=self.area_type if self.area_type in ("polygon", "circle") else "polygon",
            created_at=_aware(self.created_at),
            updated_at=_aware(self.updated_at),
        )


class InvestorRow(Base):
    __tablename__ = "investors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_domain(self) -> Investor:
        return Investor(id=self.id, company_name=self.company_name, tier=self.tier)


class SqlCoverageAreaRepository:
    """Infrastructure adapter for coverage-area storage.

    Parameters
    ----------
    url_or_engine: str | Engine
        SQLAlchemy database URL (e.g. ``sqlite:///coverage.db``) or engine.
    create_schema: bool
        Create missing tables on construction.
    clock: Callable[[], datetime]
        Source of timestamps; injectable for tests.
    """

    def __init__(
        self,
        url_or_engine: str | Engine,
        create_schema: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.engine = (
            create_engine(url_or_engine) if isinstance(url_or_engine, str) else url_or_engine
        )
        self._session = sessionmaker(self.engine, expire_on_commit=False)
        self._clock = clock
        if create_schema:
            Base.metadata.create_all(self.engine)

    def list_areas(self, owner_id: int | None = None) -> list[CoverageArea]:
        stmt = select(CoverageAreaRow).order_by(
            CoverageAreaRow.created_at.desc(), CoverageAreaRow.id
        )
        if owner_id is not None:
            stmt = stmt.where(CoverageAreaRow.investor_id == owner_id)
        with self._session() as session:
            return [row.to_domain() for row in session.scalars(stmt)]

    def get(self, area_id: str) -> CoverageArea | None:
        with self._session() as session:
            row = session.get(CoverageAreaRow, area_id)
            return row.to_domain() if row is not None else None

    def insert(
        self,
        owner_id: int,
        name: str,
        geometry: Any,
        area_type: AreaType,
    ) -> CoverageArea:
        now = self._clock()
        row = CoverageAreaRow(
            id=str(uuid4()),
            investor_id=owner_id,
            area_name=name,
            area_type=area_type,
            geojson_data=geometry,
            created_at=now,
            updated_at=now,
        )
        with self._session.begin() as session:
            session.add(row)
        logger.debug("Inserted coverage area %s", row.id)
        return row.to_domain()

    def update_name(self, area_id: str, name: str) -> CoverageArea:
        with self._session.begin() as session:
            row = session.get(CoverageAreaRow, area_id)
            if row is None:
                raise LookupError(f"Coverage area {area_id} not found")
            row.area_name = name
            row.updated_at = self._clock()
        return row.to_domain()

    def delete(self, area_id: str) -> None:
        with self._session.begin() as session:
            row = session.get(CoverageAreaRow, area_id)
            if row is None:
                raise LookupError(f"Coverage area {area_id} not found")
            session.delete(row)

    def list_investors(self) -> list[Investor]:
        stmt = select(InvestorRow).order_by(InvestorRow.company_name)
        with self._session() as session:
            return [row.to_domain() for row in session.scalars(stmt)]

    def upsert_investor(self, investor: Investor) -> None:
        """Seed or update an investor (local databases and tests)."""
        with self._session.begin() as session:
            session.merge(
                InvestorRow(
                    id=investor.id,
                    company_name=investor.company_name,
                    tier=investor.tier,
                )
            )

from datetime import datetime
from typing import List

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sentinel.errors import HistoryError
from sentinel.models import StatusRow
from sentinel.schemas import StatusRecord


class HistoryStore:
    """Historial append-only de StatusRecord por sitio.

    Cada operación abre su propia sesión y termina en commit, así que una
    lectura posterior a ``append`` siempre ve el registro recién escrito.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def append(self, record: StatusRecord) -> None:
        row = StatusRow(
            id=record.id,
            site_id=record.endpoint_id,
            observed_at=record.observed_at,
            reachable=record.reachable,
            message=record.message,
            latency_ms=record.latency_ms,
        )
        try:
            with self._session_factory() as db:
                db.add(row)
                db.commit()
        except SQLAlchemyError as e:
            raise HistoryError(f"append {record.endpoint_id}: {e}") from e

    def recent(self, site_id: str, limit: int) -> List[StatusRecord]:
        if limit <= 0:
            return []
        stmt = (
            select(StatusRow)
            .where(StatusRow.site_id == site_id)
            .order_by(StatusRow.observed_at.desc(), StatusRow.id.desc())
            .limit(limit)
        )
        try:
            with self._session_factory() as db:
                rows = db.scalars(stmt).all()
                return [StatusRecord.model_validate(r) for r in rows]
        except SQLAlchemyError as e:
            raise HistoryError(f"recent {site_id}: {e}") from e

    def count_since(self, site_id: str, since: datetime, reachable: bool = True) -> int:
        stmt = (
            select(func.count())
            .select_from(StatusRow)
            .where(
                StatusRow.site_id == site_id,
                StatusRow.observed_at >= since,
                StatusRow.reachable.is_(reachable),
            )
        )
        try:
            with self._session_factory() as db:
                return int(db.scalar(stmt) or 0)
        except SQLAlchemyError as e:
            raise HistoryError(f"count_since {site_id}: {e}") from e

    def prune_before(self, cutoff: datetime) -> int:
        stmt = delete(StatusRow).where(StatusRow.observed_at < cutoff)
        try:
            with self._session_factory() as db:
                res = db.execute(stmt)
                db.commit()
                return res.rowcount or 0
        except SQLAlchemyError as e:
            raise HistoryError(f"prune: {e}") from e

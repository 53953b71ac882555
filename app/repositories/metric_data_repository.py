"""
app/repositories/metric_data_repository.py

Persistence helpers for metric data points, API logs and snapshots.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session

from db.models.metric_data import MetricApiLog, MetricDataPoint, MetricSnapshot


@dataclass(frozen=True)
class DataPointInput:
    timestamp: datetime
    value: float
    dimensions: dict[str, Any] | None = None


@dataclass(frozen=True)
class DataPointSummary:
    count: int
    first_timestamp: datetime | None
    last_timestamp: datetime | None
    min_value: float | None
    max_value: float | None
    avg_value: float | None
    latest_value: float | None


class MetricDataRepository:
    """
    Repository for the time series stored per metric.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Data points
    # ------------------------------------------------------------------

    def list_points(
        self,
        metric_id: uuid.UUID,
        *,
        limit: int | None = None,
        offset: int = 0,
        descending: bool = False,
    ) -> list[MetricDataPoint]:
        order = MetricDataPoint.timestamp.desc() if descending else MetricDataPoint.timestamp.asc()
        stmt = select(MetricDataPoint).where(MetricDataPoint.metric_id == metric_id).order_by(order).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self._session.execute(stmt).scalars().all())

    def latest_points(self, metric_id: uuid.UUID, limit: int) -> list[MetricDataPoint]:
        """
        Return the newest ``limit`` points in ascending timestamp order.
        """

        newest = self.list_points(metric_id, limit=limit, descending=True)
        return list(reversed(newest))

    def count_points(self, metric_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(MetricDataPoint).where(MetricDataPoint.metric_id == metric_id)
        return int(self._session.execute(stmt).scalar_one())

    def delete_all(self, metric_id: uuid.UUID) -> int:
        result = self._session.execute(delete(MetricDataPoint).where(MetricDataPoint.metric_id == metric_id))
        return int(result.rowcount or 0)

    def replace_snapshot(self, metric_id: uuid.UUID, points: Sequence[DataPointInput], base_time: datetime) -> int:
        """
        Snapshot mode: drop all points, then insert at ``base_time + index ms``.
        """

        self.delete_all(metric_id)
        rows = [
            MetricDataPoint(
                metric_id=metric_id,
                timestamp=base_time + timedelta(milliseconds=index),
                value=point.value,
                dimensions=point.dimensions,
            )
            for index, point in enumerate(points)
        ]
        self._session.add_all(rows)
        self._session.flush()
        return len(rows)

    def replace_timestamps(self, metric_id: uuid.UUID, points: Sequence[DataPointInput]) -> int:
        """
        Time-series mode: drop points sharing a timestamp with ``points``, then insert.
        """

        if not points:
            return 0
        timestamps = [point.timestamp for point in points]
        self._session.execute(
            delete(MetricDataPoint).where(
                MetricDataPoint.metric_id == metric_id,
                MetricDataPoint.timestamp.in_(timestamps),
            )
        )
        self._session.add_all(
            [
                MetricDataPoint(
                    metric_id=metric_id,
                    timestamp=point.timestamp,
                    value=point.value,
                    dimensions=point.dimensions,
                )
                for point in points
            ]
        )
        self._session.flush()
        return len(points)

    def upsert_points(self, metric_id: uuid.UUID, points: Sequence[DataPointInput]) -> int:
        """
        Insert or update by (metric_id, timestamp).
        """

        if not points:
            return 0
        stmt = pg_insert(MetricDataPoint).values(
            [
                {
                    "id": uuid.uuid4(),
                    "metric_id": metric_id,
                    "timestamp": point.timestamp,
                    "value": point.value,
                    "dimensions": point.dimensions,
                }
                for point in points
            ]
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_metric_data_points_metric_id_timestamp",
            set_={"value": stmt.excluded.value, "dimensions": stmt.excluded.dimensions},
        )
        self._session.execute(stmt)
        return len(points)

    def summarize(self, metric_id: uuid.UUID) -> DataPointSummary:
        stmt = select(
            func.count(MetricDataPoint.id),
            func.min(MetricDataPoint.timestamp),
            func.max(MetricDataPoint.timestamp),
            func.min(MetricDataPoint.value),
            func.max(MetricDataPoint.value),
            func.avg(MetricDataPoint.value),
        ).where(MetricDataPoint.metric_id == metric_id)
        count, first_ts, last_ts, min_value, max_value, avg_value = self._session.execute(stmt).one()

        latest = self.list_points(metric_id, limit=1, descending=True)
        return DataPointSummary(
            count=int(count or 0),
            first_timestamp=first_ts,
            last_timestamp=last_ts,
            min_value=float(min_value) if min_value is not None else None,
            max_value=float(max_value) if max_value is not None else None,
            avg_value=float(avg_value) if avg_value is not None else None,
            latest_value=latest[0].value if latest else None,
        )

    def dimension_keys(self, metric_id: uuid.UUID, sample_size: int = 100) -> list[str]:
        keys: set[str] = set()
        for point in self.list_points(metric_id, limit=sample_size, descending=True):
            if isinstance(point.dimensions, dict):
                keys.update(point.dimensions.keys())
        return sorted(keys)

    # ------------------------------------------------------------------
    # Logs and snapshots
    # ------------------------------------------------------------------

    def add_api_log(
        self,
        *,
        metric_id: uuid.UUID,
        endpoint: str,
        success: bool,
        endpoint_config: dict[str, Any] | None = None,
        raw_response: Any = None,
        error: str | None = None,
    ) -> MetricApiLog:
        log = MetricApiLog(
            metric_id=metric_id,
            endpoint=endpoint,
            endpoint_config=endpoint_config,
            raw_response=raw_response,
            success=success,
            error=error,
        )
        self._session.add(log)
        self._session.flush()
        return log

    def recent_pipeline_logs(self, metric_id: uuid.UUID, limit: int = 20) -> list[MetricApiLog]:
        """
        Newest first.
        """

        stmt = (
            select(MetricApiLog)
            .where(MetricApiLog.metric_id == metric_id, MetricApiLog.endpoint.startswith("pipeline:"))
            .order_by(MetricApiLog.created_at.desc())
            .limit(limit)
        )
        return list(self._session.execute(stmt).scalars().all())

    def add_snapshot(
        self,
        *,
        metric_id: uuid.UUID,
        value: float | None,
        payload: dict[str, Any] | None = None,
        source: str = "poll",
    ) -> MetricSnapshot:
        snapshot = MetricSnapshot(metric_id=metric_id, value=value, payload=payload, source=source)
        self._session.add(snapshot)
        self._session.flush()
        return snapshot

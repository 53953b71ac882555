"""
app/repositories/metric_repository.py

Query helpers for metrics and their dashboard charts.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from db.models.dashboard_chart import DashboardChart
from db.models.metric import Metric, PollFrequency


class MetricRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, metric_id: uuid.UUID) -> Metric | None:
        return self._session.get(Metric, metric_id)

    def list_for_organization(self, organization_id: str, team_id: uuid.UUID | None = None) -> list[Metric]:
        stmt = select(Metric).where(Metric.organization_id == organization_id)
        if team_id is not None:
            stmt = stmt.where(Metric.team_id == team_id)
        stmt = stmt.order_by(Metric.created_at.desc())
        return list(self._session.execute(stmt).scalars().all())

    def list_due_for_poll(self, now: datetime, limit: int) -> list[Metric]:
        """
        Integration metrics whose ``next_poll_at`` has passed, oldest first.
        """

        stmt = (
            select(Metric)
            .where(
                Metric.next_poll_at.is_not(None),
                Metric.next_poll_at <= now,
                Metric.poll_frequency != PollFrequency.MANUAL,
                Metric.template_id.is_not(None),
                Metric.integration_id.is_not(None),
            )
            .options(selectinload(Metric.integration))
            .order_by(Metric.next_poll_at.asc())
            .limit(limit)
        )
        return list(self._session.execute(stmt).scalars().all())

    def list_integration_metrics(self) -> list[Metric]:
        stmt = (
            select(Metric)
            .where(Metric.integration_id.is_not(None), Metric.template_id.is_not(None))
            .order_by(Metric.organization_id)
        )
        return list(self._session.execute(stmt).scalars().all())

    def list_charts(self, metric_id: uuid.UUID) -> list[DashboardChart]:
        stmt = select(DashboardChart).where(DashboardChart.metric_id == metric_id).order_by(DashboardChart.position)
        return list(self._session.execute(stmt).scalars().all())

    def count_charts(self, organization_id: str) -> int:
        stmt = select(func.count()).select_from(DashboardChart).where(DashboardChart.organization_id == organization_id)
        return int(self._session.execute(stmt).scalar_one())

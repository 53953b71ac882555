"""
app/repositories/transformer_repository.py

Persistence helpers for ingestion and chart transformers.
"""

from __future__ import annotations

import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models.dashboard_chart import DashboardChart
from db.models.transformer import ChartTransformer, DataIngestionTransformer


class TransformerRepository:
    """
    One ingestion transformer per metric (keyed by metric id in ``template_id``)
    and one chart transformer per dashboard chart.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_ingestion(self, metric_id: uuid.UUID | str) -> DataIngestionTransformer | None:
        stmt = select(DataIngestionTransformer).where(DataIngestionTransformer.template_id == str(metric_id))
        return self._session.execute(stmt).scalars().first()

    def save_ingestion(
        self,
        *,
        metric_id: uuid.UUID | str,
        transformer_code: str,
        value_label: str | None = None,
        data_description: str | None = None,
        extraction_prompt_used: str | None = None,
    ) -> DataIngestionTransformer:
        existing = self.get_ingestion(metric_id)
        if existing is None:
            existing = DataIngestionTransformer(
                template_id=str(metric_id),
                transformer_code=transformer_code,
                value_label=value_label,
                data_description=data_description,
                extraction_prompt_used=extraction_prompt_used,
            )
            self._session.add(existing)
        else:
            existing.transformer_code = transformer_code
            existing.value_label = value_label or existing.value_label
            existing.data_description = data_description or existing.data_description
            existing.extraction_prompt_used = extraction_prompt_used
        self._session.flush()
        return existing

    def delete_ingestion(self, metric_id: uuid.UUID | str) -> int:
        result = self._session.execute(
            delete(DataIngestionTransformer).where(DataIngestionTransformer.template_id == str(metric_id))
        )
        return int(result.rowcount or 0)

    def get_chart(self, dashboard_chart_id: uuid.UUID) -> ChartTransformer | None:
        stmt = select(ChartTransformer).where(ChartTransformer.dashboard_chart_id == dashboard_chart_id)
        return self._session.execute(stmt).scalars().first()

    def list_charts_for_metric(self, metric_id: uuid.UUID) -> list[ChartTransformer]:
        stmt = (
            select(ChartTransformer)
            .join(DashboardChart, DashboardChart.id == ChartTransformer.dashboard_chart_id)
            .where(DashboardChart.metric_id == metric_id)
        )
        return list(self._session.execute(stmt).scalars().all())

    def save_chart(
        self,
        *,
        dashboard_chart_id: uuid.UUID,
        transformer_code: str,
        chart_type: str,
        cadence: str,
        date_range: str,
        aggregation: str,
        user_prompt: str | None = None,
        selected_dimension: str | None = None,
    ) -> ChartTransformer:
        """
        Insert or update the chart transformer; updates bump ``version``.
        """

        existing = self.get_chart(dashboard_chart_id)
        if existing is None:
            existing = ChartTransformer(
                dashboard_chart_id=dashboard_chart_id,
                transformer_code=transformer_code,
                chart_type=chart_type,
                cadence=cadence,
                date_range=date_range,
                aggregation=aggregation,
                user_prompt=user_prompt,
                selected_dimension=selected_dimension,
                version=1,
            )
            self._session.add(existing)
        else:
            existing.transformer_code = transformer_code
            existing.chart_type = chart_type
            existing.cadence = cadence
            existing.date_range = date_range
            existing.aggregation = aggregation
            existing.user_prompt = user_prompt
            existing.selected_dimension = selected_dimension
            existing.version = (existing.version or 0) + 1
        self._session.flush()
        return existing

    def delete_charts_for_metric(self, metric_id: uuid.UUID) -> int:
        chart_ids = select(DashboardChart.id).where(DashboardChart.metric_id == metric_id)
        result = self._session.execute(
            delete(ChartTransformer).where(ChartTransformer.dashboard_chart_id.in_(chart_ids))
        )
        return int(result.rowcount or 0)

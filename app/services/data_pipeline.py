"""
app/services/data_pipeline.py

Metric data pipeline: fetch provider data, transform it with the metric's
ingestion transformer, persist the resulting data points and refresh the
metric's charts.

Soft refresh reuses existing transformers. Hard refresh deletes the data
points and every transformer for the metric and regenerates them from the
live API response.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy.orm import Session

from app.domain.metric_templates import MetricTemplate, get_template
from app.domain.pipeline_steps import PipelineStep, PipelineType
from app.errors import NotFoundError, PipelineError
from app.repositories.metric_data_repository import DataPointInput, MetricDataRepository
from app.repositories.transformer_repository import TransformerRepository
from app.services import chart_generator
from app.services.data_fetching import DataFetchError, fetch_data
from app.services.pipeline_runner import PipelineRunner
from db.models.metric import Metric
from db.models.transformer import DataIngestionTransformer
from llm_codegen.adapter import BaseLLMAdapter
from llm_codegen.generator import (
    generate_data_ingestion_transformer_code,
    regenerate_data_ingestion_transformer_code,
)
from llm_codegen.prompts import IngestionPromptInput
from sandbox import executor
from sandbox.executor import DataPoint

logger = logging.getLogger(__name__)

DEFAULT_CADENCE = "DAILY"


@dataclass(frozen=True)
class FetchOutcome:
    success: bool
    data: Any = None
    error: str | None = None


@dataclass(frozen=True)
class TransformResult:
    success: bool
    data_points: list[DataPoint] = field(default_factory=list)
    transformer_created: bool = False
    error: str | None = None


@dataclass(frozen=True)
class RefreshResult:
    success: bool
    data_point_count: int = 0
    error: str | None = None


def metric_cadence(metric: Metric) -> str:
    """
    Chart cadence for a metric, from ``endpoint_config.cadence`` upper-cased.
    """

    config = metric.endpoint_config or {}
    cadence = config.get("cadence") if isinstance(config, dict) else None
    if isinstance(cadence, str) and cadence.strip():
        return cadence.strip().upper()
    return DEFAULT_CADENCE


def _endpoint_params(metric: Metric) -> dict[str, str]:
    config = metric.endpoint_config or {}
    return {str(key): str(value) for key, value in config.items() if value is not None}


def _is_time_series(template: MetricTemplate | None) -> bool:
    return template.is_time_series if template is not None else True


# ---------------------------------------------------------------------------
# Fetch and persist
# ---------------------------------------------------------------------------


def fetch_api_data_with_logging(
    session: Session,
    *,
    metric_id: uuid.UUID,
    integration_id: str,
    connection_id: str,
    endpoint: str,
    method: str = "GET",
    endpoint_config: dict[str, str] | None = None,
    request_body: Any = None,
) -> FetchOutcome:
    """
    Fetch provider data and record the attempt as a MetricApiLog row.

    Fetch failures are returned, not raised.
    """

    repository = MetricDataRepository(session)
    try:
        result = fetch_data(
            integration_id,
            connection_id,
            endpoint,
            method=method,
            params=endpoint_config,
            body=request_body,
        )
    except DataFetchError as exc:
        repository.add_api_log(
            metric_id=metric_id,
            endpoint=endpoint,
            success=False,
            endpoint_config=endpoint_config,
            error=str(exc),
        )
        session.commit()
        return FetchOutcome(success=False, error=str(exc))

    repository.add_api_log(
        metric_id=metric_id,
        endpoint=endpoint,
        success=True,
        endpoint_config=endpoint_config,
        raw_response=result.data,
    )
    session.commit()
    return FetchOutcome(success=True, data=result.data)


def save_data_points_batch(
    session: Session,
    metric_id: uuid.UUID,
    points: Sequence[DataPoint],
    is_time_series: bool,
) -> int:
    """
    Persist transformer output.

    Snapshot metrics replace every stored point, spreading the new points
    one millisecond apart from the first point's timestamp. Time-series
    metrics replace only the points whose timestamps are being written.
    """

    if not points:
        return 0

    rows = [DataPointInput(timestamp=p.timestamp, value=p.value, dimensions=p.dimensions) for p in points]
    repository = MetricDataRepository(session)
    if is_time_series:
        saved = repository.replace_timestamps(metric_id, rows)
    else:
        base_time = rows[0].timestamp or datetime.now(timezone.utc)
        saved = repository.replace_snapshot(metric_id, rows, base_time)
    logger.info("Saved data points metric_id=%s count=%s time_series=%s", metric_id, saved, is_time_series)
    return saved


# ---------------------------------------------------------------------------
# Ingestion transformer
# ---------------------------------------------------------------------------


def _ingestion_prompt_input(
    template: MetricTemplate,
    integration_id: str,
    api_data: Any,
) -> IngestionPromptInput:
    return IngestionPromptInput(
        template_id=template.template_id,
        integration_id=integration_id,
        endpoint=template.metric_endpoint,
        method=template.method or "GET",
        sample_api_response=api_data,
        metric_description=template.description,
        available_params=[param.name for param in template.required_params],
        extraction_prompt=template.extraction_prompt,
    )


def get_or_create_data_ingestion_transformer(
    session: Session,
    metric_id: uuid.UUID,
    integration_id: str,
    template: MetricTemplate | None,
    api_data: Any,
    endpoint_config: dict[str, str],
    adapter: BaseLLMAdapter | None = None,
) -> tuple[DataIngestionTransformer, bool]:
    """
    Return the metric's ingestion transformer, generating one when absent.

    A generated transformer must pass a test run against ``api_data``. One
    repair attempt is made with the failing code and error before giving up.

    Returns
    -------
    tuple
        The transformer and whether it was created by this call.
    """

    if template is None:
        raise NotFoundError("Template not found")

    repository = TransformerRepository(session)
    existing = repository.get_ingestion(metric_id)
    if existing is not None:
        return existing, False

    prompt_input = _ingestion_prompt_input(template, integration_id, api_data)
    generated = generate_data_ingestion_transformer_code(prompt_input, adapter=adapter)
    final_code = generated.code

    test_result = executor.test_data_ingestion_transformer(generated.code, api_data, endpoint_config)
    if not test_result.success:
        logger.warning(
            "Ingestion transformer failed test metric_id=%s error=%s",
            metric_id,
            test_result.error,
        )
        regenerated = regenerate_data_ingestion_transformer_code(
            prompt_input,
            previous_code=generated.code,
            error=test_result.error,
            adapter=adapter,
        )
        retest = executor.test_data_ingestion_transformer(regenerated.code, api_data, endpoint_config)
        if not retest.success:
            raise PipelineError(f"Failed to generate working transformer: {retest.error}")
        final_code = regenerated.code

    transformer = repository.save_ingestion(
        metric_id=metric_id,
        transformer_code=final_code,
        value_label=template.default_unit,
        data_description=template.description,
        extraction_prompt_used=template.extraction_prompt,
    )
    session.commit()
    logger.info("Created ingestion transformer metric_id=%s template_id=%s", metric_id, template.template_id)
    return transformer, True


def fetch_transform_and_save(
    session: Session,
    *,
    metric_id: uuid.UUID,
    template_id: str,
    integration_id: str,
    connection_id: str,
    endpoint_config: dict[str, str],
    is_time_series: bool,
    generate_transformer: bool,
    adapter: BaseLLMAdapter | None = None,
) -> TransformResult:
    """
    Fetch once, transform, save.

    With ``generate_transformer`` a missing ingestion transformer is
    generated from the fetched payload; otherwise the existing one must be
    present.
    """

    template = get_template(template_id)
    if template is None:
        return TransformResult(success=False, error=f"Template not found: {template_id}")

    fetched = fetch_api_data_with_logging(
        session,
        metric_id=metric_id,
        integration_id=integration_id,
        connection_id=connection_id,
        endpoint=template.metric_endpoint,
        method=template.method,
        endpoint_config=endpoint_config,
        request_body=template.request_body,
    )
    if not fetched.success:
        return TransformResult(success=False, error=f"Failed to fetch data: {fetched.error}")

    created = False
    if generate_transformer:
        transformer, created = get_or_create_data_ingestion_transformer(
            session,
            metric_id,
            integration_id,
            template,
            fetched.data,
            endpoint_config,
            adapter=adapter,
        )
    else:
        transformer = TransformerRepository(session).get_ingestion(metric_id)
        if transformer is None:
            return TransformResult(success=False, error="No transformer found for this metric")

    result = executor.execute_data_ingestion_transformer(
        transformer.transformer_code,
        fetched.data,
        endpoint_config,
    )
    if not result.success or result.data is None:
        return TransformResult(success=False, error=result.error)

    save_data_points_batch(session, metric_id, result.data, is_time_series)
    session.commit()
    return TransformResult(success=True, data_points=list(result.data), transformer_created=created)


def ingest_metric_data(
    session: Session,
    *,
    metric_id: uuid.UUID,
    template_id: str,
    integration_id: str,
    connection_id: str,
    endpoint_config: dict[str, str],
    is_time_series: bool = True,
    adapter: BaseLLMAdapter | None = None,
) -> TransformResult:
    return fetch_transform_and_save(
        session,
        metric_id=metric_id,
        template_id=template_id,
        integration_id=integration_id,
        connection_id=connection_id,
        endpoint_config=endpoint_config,
        is_time_series=is_time_series,
        generate_transformer=True,
        adapter=adapter,
    )


def execute_transformer_for_polling(session: Session, metric: Metric) -> TransformResult:
    """
    Soft refresh of a metric's data for the poller; never generates code.
    """

    if metric.template_id is None or metric.integration is None:
        return TransformResult(success=False, error="Metric not found or not configured")

    template = get_template(metric.template_id)
    return fetch_transform_and_save(
        session,
        metric_id=metric.id,
        template_id=metric.template_id,
        integration_id=metric.integration.provider_id,
        connection_id=metric.integration.connection_id,
        endpoint_config=_endpoint_params(metric),
        is_time_series=_is_time_series(template),
        generate_transformer=False,
    )


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------


def _regenerate_chart_transformers(
    session: Session,
    metric: Metric,
    cadence: str,
    adapter: BaseLLMAdapter | None,
) -> None:
    TransformerRepository(session).delete_charts_for_metric(metric.id)
    session.commit()

    for chart in metric.dashboard_charts:
        try:
            chart_generator.create_chart_transformer(
                session,
                dashboard_chart_id=chart.id,
                metric_name=metric.name,
                metric_description=metric.description or "",
                chart_type=chart.chart_type or "line",
                cadence=cadence,
                adapter=adapter,
            )
        except Exception as exc:
            session.rollback()
            logger.warning(
                "Chart transformer generation failed dashboard_chart_id=%s error=%s",
                chart.id,
                exc,
            )


def execute_chart_transformers(session: Session, metric: Metric) -> None:
    charts = [chart for chart in metric.dashboard_charts if chart.chart_transformer is not None]
    if not charts:
        return

    points = chart_generator.load_data_points(session, metric.id)
    for chart in charts:
        try:
            result = chart_generator.execute_chart_transformer_for_dashboard_chart(session, chart.id, data_points=points)
        except Exception as exc:
            session.rollback()
            logger.warning("Chart transformer failed dashboard_chart_id=%s error=%s", chart.id, exc)
            continue
        if not result.success:
            logger.warning("Chart transformer failed dashboard_chart_id=%s error=%s", chart.id, result.error)


def refresh_metric_and_charts(
    session: Session,
    metric_id: uuid.UUID,
    force_regenerate: bool = False,
    adapter: BaseLLMAdapter | None = None,
) -> RefreshResult:
    """
    Refresh a metric's data and every chart built on it.

    Chart failures are logged per chart and do not fail the refresh. The
    runner always finishes in ``complete()`` or ``fail()``; unexpected
    errors are re-raised after ``fail()``.
    """

    metric = session.get(Metric, metric_id)
    if metric is None or metric.template_id is None or metric.integration is None:
        return RefreshResult(success=False, error="Metric not found or not configured")

    pipeline_type = PipelineType.HARD_REFRESH if force_regenerate else PipelineType.SOFT_REFRESH
    runner = PipelineRunner(session, metric.id, pipeline_type)

    template = get_template(metric.template_id)
    is_time_series = _is_time_series(template)
    endpoint_config = _endpoint_params(metric)
    cadence = metric_cadence(metric)
    integration = metric.integration
    transform_kwargs = dict(
        metric_id=metric.id,
        template_id=metric.template_id,
        integration_id=integration.provider_id,
        connection_id=integration.connection_id,
        endpoint_config=endpoint_config,
        is_time_series=is_time_series,
        adapter=adapter,
    )

    try:
        if force_regenerate:
            data_repository = MetricDataRepository(session)
            transformer_repository = TransformerRepository(session)
            runner.run(PipelineStep.DELETING_OLD_DATA, data_repository.delete_all, metric.id)
            runner.run(PipelineStep.DELETING_OLD_TRANSFORMER, transformer_repository.delete_ingestion, metric.id)
            runner.set_status(PipelineStep.FETCHING_API_DATA)
            result = runner.run(
                PipelineStep.GENERATING_INGESTION_TRANSFORMER,
                fetch_transform_and_save,
                session,
                generate_transformer=True,
                **transform_kwargs,
            )
        else:
            result = runner.run(
                PipelineStep.FETCHING_API_DATA,
                fetch_transform_and_save,
                session,
                generate_transformer=False,
                **transform_kwargs,
            )

        if not result.success:
            runner.fail(result.error or "Transform failed")
            return RefreshResult(success=False, error=result.error)

        if force_regenerate:
            runner.run(
                PipelineStep.GENERATING_CHART_TRANSFORMER,
                _regenerate_chart_transformers,
                session,
                metric,
                cadence,
                adapter,
            )
        else:
            runner.run(PipelineStep.EXECUTING_CHART_TRANSFORMER, execute_chart_transformers, session, metric)

        runner.complete()
        return RefreshResult(success=True, data_point_count=len(result.data_points))
    except Exception as exc:
        runner.fail(str(exc) or "Unknown error")
        raise


def update_manual_metric_chart(
    session: Session,
    metric_id: uuid.UUID,
    adapter: BaseLLMAdapter | None = None,
) -> RefreshResult:
    """
    Rebuild the chart of a manual metric from stored points; no API fetch.
    """

    metric = session.get(Metric, metric_id)
    if metric is None:
        return RefreshResult(success=False, error="Metric not found")

    if not metric.dashboard_charts:
        return RefreshResult(success=False, error="No dashboard chart found")
    chart = metric.dashboard_charts[0]

    points = chart_generator.load_data_points(session, metric.id)
    if not points:
        return RefreshResult(success=False, error="No data points to visualize")

    if chart.chart_transformer is not None:
        result = chart_generator.execute_chart_transformer_for_dashboard_chart(session, chart.id, data_points=points)
        return RefreshResult(success=result.success, data_point_count=len(points), error=result.error)

    chart_generator.create_chart_transformer(
        session,
        dashboard_chart_id=chart.id,
        metric_name=metric.name,
        metric_description=metric.description or "Manual metric",
        chart_type="line",
        cadence=metric_cadence(metric),
        adapter=adapter,
    )
    return RefreshResult(success=True, data_point_count=len(points))


# ---------------------------------------------------------------------------
# Creation and partial regeneration
# ---------------------------------------------------------------------------


def run_metric_creation(
    session: Session,
    metric_id: uuid.UUID,
    adapter: BaseLLMAdapter | None = None,
) -> RefreshResult:
    """
    First ingestion for a new integration metric plus its first chart.

    Failures are recorded in ``last_error`` as ``Data ingestion failed: ...``
    or ``Chart generation failed: ...``.
    """

    metric = session.get(Metric, metric_id)
    if metric is None or metric.template_id is None or metric.integration is None:
        return RefreshResult(success=False, error="Metric not found or not configured")

    runner = PipelineRunner(session, metric.id, PipelineType.CREATE)
    template = get_template(metric.template_id)
    runner.set_status(PipelineStep.FETCHING_API_DATA)
    try:
        result = runner.run(
            PipelineStep.GENERATING_INGESTION_TRANSFORMER,
            ingest_metric_data,
            session,
            metric_id=metric.id,
            template_id=metric.template_id,
            integration_id=metric.integration.provider_id,
            connection_id=metric.integration.connection_id,
            endpoint_config=_endpoint_params(metric),
            is_time_series=_is_time_series(template),
            adapter=adapter,
        )
    except Exception as exc:
        runner.fail(f"Data ingestion failed: {exc}")
        return RefreshResult(success=False, error=f"Data ingestion failed: {exc}")

    if not result.success:
        runner.fail(f"Data ingestion failed: {result.error}")
        return RefreshResult(success=False, error=f"Data ingestion failed: {result.error}")

    chart = metric.dashboard_charts[0] if metric.dashboard_charts else None
    if chart is not None:
        try:
            runner.run(
                PipelineStep.GENERATING_CHART_TRANSFORMER,
                chart_generator.create_chart_transformer,
                session,
                dashboard_chart_id=chart.id,
                metric_name=metric.name,
                metric_description=metric.description or (template.description if template else ""),
                chart_type="line",
                cadence=DEFAULT_CADENCE,
                adapter=adapter,
            )
        except Exception as exc:
            runner.fail(f"Chart generation failed: {exc}")
            return RefreshResult(
                success=False,
                data_point_count=len(result.data_points),
                error=f"Chart generation failed: {exc}",
            )

    runner.complete()
    return RefreshResult(success=True, data_point_count=len(result.data_points))


def regenerate_ingestion_only(
    session: Session,
    metric_id: uuid.UUID,
    adapter: BaseLLMAdapter | None = None,
) -> RefreshResult:
    """
    Replace the ingestion transformer and re-ingest; charts are re-executed
    with their existing code.
    """

    metric = session.get(Metric, metric_id)
    if metric is None or metric.template_id is None or metric.integration is None:
        return RefreshResult(success=False, error="Metric not found or not configured")

    runner = PipelineRunner(session, metric.id, PipelineType.INGESTION_ONLY)
    template = get_template(metric.template_id)
    try:
        runner.run(PipelineStep.DELETING_OLD_TRANSFORMER, TransformerRepository(session).delete_ingestion, metric.id)
        result = runner.run(
            PipelineStep.GENERATING_INGESTION_TRANSFORMER,
            ingest_metric_data,
            session,
            metric_id=metric.id,
            template_id=metric.template_id,
            integration_id=metric.integration.provider_id,
            connection_id=metric.integration.connection_id,
            endpoint_config=_endpoint_params(metric),
            is_time_series=_is_time_series(template),
            adapter=adapter,
        )
        if not result.success:
            runner.fail(result.error or "Failed to regenerate ingestion")
            return RefreshResult(success=False, error=result.error)

        runner.run(PipelineStep.EXECUTING_CHART_TRANSFORMER, execute_chart_transformers, session, metric)
        runner.complete()
        return RefreshResult(success=True, data_point_count=len(result.data_points))
    except Exception as exc:
        runner.fail(str(exc) or "Unknown error")
        raise


def regenerate_chart_only(
    session: Session,
    metric_id: uuid.UUID,
    *,
    chart_type: str | None = None,
    cadence: str | None = None,
    selected_dimension: str | None = None,
    adapter: BaseLLMAdapter | None = None,
) -> RefreshResult:
    metric = session.get(Metric, metric_id)
    if metric is None:
        return RefreshResult(success=False, error="Metric not found")
    if not metric.dashboard_charts:
        return RefreshResult(success=False, error="Dashboard chart not found")

    chart = metric.dashboard_charts[0]
    runner = PipelineRunner(session, metric.id, PipelineType.CHART_ONLY)
    try:
        if chart.chart_transformer is not None:
            runner.run(PipelineStep.DELETING_OLD_TRANSFORMER, _delete_chart_transformer, session, chart.id)
        runner.run(
            PipelineStep.GENERATING_CHART_TRANSFORMER,
            chart_generator.create_chart_transformer,
            session,
            dashboard_chart_id=chart.id,
            metric_name=metric.name,
            metric_description=metric.description or "",
            chart_type=chart_type or chart.chart_type or "line",
            cadence=cadence or metric_cadence(metric),
            selected_dimension=selected_dimension,
            adapter=adapter,
        )
        runner.complete()
        return RefreshResult(success=True)
    except Exception as exc:
        runner.fail(str(exc) or "Unknown error")
        raise


def _delete_chart_transformer(session: Session, dashboard_chart_id: uuid.UUID) -> None:
    transformer = TransformerRepository(session).get_chart(dashboard_chart_id)
    if transformer is not None:
        session.delete(transformer)
        session.flush()

"""
app/domain package marker.
"""

from app.domain.metric_templates import MetricTemplate, TemplateParam, get_template, get_templates_for_integration
from app.domain.pipeline_steps import (
    PIPELINE_CONFIGS,
    PIPELINE_STEPS,
    PipelineStep,
    PipelineType,
    StepConfig,
    detect_pipeline_type,
    get_step_display_name,
)
from app.domain.workspace import WorkspaceContext, WorkspaceType

__all__ = [
    "MetricTemplate",
    "PIPELINE_CONFIGS",
    "PIPELINE_STEPS",
    "PipelineStep",
    "PipelineType",
    "StepConfig",
    "TemplateParam",
    "WorkspaceContext",
    "WorkspaceType",
    "detect_pipeline_type",
    "get_step_display_name",
    "get_template",
    "get_templates_for_integration",
]

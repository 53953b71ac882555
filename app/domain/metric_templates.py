"""
app/domain/metric_templates.py

Registry of metric templates per integration provider.

A template names the provider endpoint a metric polls, the parameters the
user supplies to fill its ``{PLACEHOLDER}`` segments, and how the response
should be interpreted (snapshot vs time series).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TemplateParam:
    name: str
    label: str
    description: str
    type: str = "text"
    required: bool = True
    placeholder: str | None = None
    dynamic_endpoint: str | None = None
    dynamic_method: str = "GET"
    dynamic_body: str | None = None
    depends_on: str | None = None


@dataclass(frozen=True)
class MetricTemplate:
    template_id: str
    label: str
    description: str
    integration_id: str
    metric_type: str
    metric_endpoint: str
    default_unit: str | None = None
    method: str = "GET"
    request_body: str | None = None
    required_params: tuple[TemplateParam, ...] = field(default_factory=tuple)
    is_time_series: bool = False
    default_poll_frequency: str = "daily"
    extraction_prompt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "label": self.label,
            "description": self.description,
            "integration_id": self.integration_id,
            "metric_type": self.metric_type,
            "default_unit": self.default_unit,
            "metric_endpoint": self.metric_endpoint,
            "method": self.method,
            "is_time_series": self.is_time_series,
            "default_poll_frequency": self.default_poll_frequency,
            "required_params": [
                {
                    "name": param.name,
                    "label": param.label,
                    "description": param.description,
                    "type": param.type,
                    "required": param.required,
                    "placeholder": param.placeholder,
                    "dynamic_endpoint": param.dynamic_endpoint,
                    "dynamic_method": param.dynamic_method,
                    "depends_on": param.depends_on,
                }
                for param in self.required_params
            ],
        }


def _graphql_body(query: str, variables: dict[str, Any] | None = None) -> str:
    return json.dumps({"query": " ".join(query.split()), "variables": variables or {}})


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------

_GITHUB_REPO_PARAMS = (
    TemplateParam(
        name="OWNER",
        label="Repository Owner",
        description="GitHub username or organization",
        placeholder="facebook",
    ),
    TemplateParam(
        name="REPO",
        label="Repository Name",
        description="Repository name",
        type="dynamic-select",
        placeholder="Select a repository",
        dynamic_endpoint="/user/repos?per_page=100&sort=updated",
    ),
)

_GITHUB_TEMPLATES = (
    MetricTemplate(
        template_id="github-followers-count",
        label="Followers",
        description="Total number of GitHub followers",
        integration_id="github",
        metric_type="number",
        default_unit="followers",
        metric_endpoint="/user",
    ),
    MetricTemplate(
        template_id="github-repos-count",
        label="Public Repositories",
        description="Total count of public repositories",
        integration_id="github",
        metric_type="number",
        default_unit="repos",
        metric_endpoint="/user",
    ),
    MetricTemplate(
        template_id="github-repo-stars",
        label="Repository Stars",
        description="Star count for a specific repository",
        integration_id="github",
        metric_type="number",
        default_unit="stars",
        metric_endpoint="/repos/{OWNER}/{REPO}",
        required_params=_GITHUB_REPO_PARAMS,
    ),
    MetricTemplate(
        template_id="github-repo-forks",
        label="Repository Forks",
        description="Fork count for a specific repository",
        integration_id="github",
        metric_type="number",
        default_unit="forks",
        metric_endpoint="/repos/{OWNER}/{REPO}",
        required_params=_GITHUB_REPO_PARAMS,
    ),
    MetricTemplate(
        template_id="github-repo-open-issues",
        label="Open Issues Count",
        description="Number of open issues in a repository",
        integration_id="github",
        metric_type="number",
        default_unit="issues",
        metric_endpoint="/repos/{OWNER}/{REPO}",
        required_params=_GITHUB_REPO_PARAMS,
    ),
    MetricTemplate(
        template_id="github-commit-activity",
        label="Commit Activity (Last Year)",
        description="Weekly commit activity for time-series charts",
        integration_id="github",
        metric_type="number",
        metric_endpoint="/repos/{OWNER}/{REPO}/stats/commit_activity",
        required_params=_GITHUB_REPO_PARAMS,
        is_time_series=True,
    ),
)


# ---------------------------------------------------------------------------
# Google Sheets
# ---------------------------------------------------------------------------

_GSHEETS_TEMPLATES = (
    MetricTemplate(
        template_id="gsheets-cell-value",
        label="Spreadsheet Cell Value",
        description="Read a numeric value from a specific cell",
        integration_id="google-sheet",
        metric_type="number",
        metric_endpoint="/v4/spreadsheets/{SPREADSHEET_ID}/values/{RANGE}",
        required_params=(
            TemplateParam(
                name="SPREADSHEET_ID",
                label="Spreadsheet ID",
                description="The ID from the spreadsheet URL",
            ),
            TemplateParam(
                name="RANGE",
                label="Cell Range",
                description="A1 notation (e.g., Sheet1!A1)",
                placeholder="Sheet1!A1",
            ),
        ),
    ),
    MetricTemplate(
        template_id="gsheets-column-data",
        label="Column Data (Full Dataset)",
        description="Track all values in a column for visualization",
        integration_id="google-sheet",
        metric_type="number",
        metric_endpoint="/v4/spreadsheets/{SPREADSHEET_ID}/values/{SHEET_NAME}",
        required_params=(
            TemplateParam(
                name="SPREADSHEET_ID",
                label="Spreadsheet ID",
                description="From the spreadsheet URL",
            ),
            TemplateParam(
                name="SHEET_NAME",
                label="Sheet Name",
                description="Select sheet",
                type="dynamic-select",
                dynamic_endpoint="/v4/spreadsheets/{SPREADSHEET_ID}",
                depends_on="SPREADSHEET_ID",
            ),
            TemplateParam(
                name="COLUMN_INDEX",
                label="Column Index",
                description="Column index (0-based)",
                type="number",
                placeholder="0",
            ),
        ),
    ),
)


# ---------------------------------------------------------------------------
# PostHog
# ---------------------------------------------------------------------------

_POSTHOG_PROJECT_PARAM = TemplateParam(
    name="PROJECT_ID",
    label="Project",
    description="Select PostHog project",
    type="dynamic-select",
    dynamic_endpoint="/api/projects/",
)

_POSTHOG_TEMPLATES = (
    MetricTemplate(
        template_id="posthog-event-count",
        label="Event Count (Time Series)",
        description="Count occurrences of a specific event over time",
        integration_id="posthog",
        metric_type="number",
        default_unit="events",
        metric_endpoint="/api/projects/{PROJECT_ID}/query/",
        method="POST",
        request_body=json.dumps(
            {
                "query": {
                    "kind": "HogQLQuery",
                    "query": (
                        "SELECT formatDateTime(timestamp, '%Y-%m-%d') as date, count() as count "
                        "FROM events WHERE event = '{EVENT_NAME}' "
                        "AND timestamp > now() - INTERVAL 30 DAY GROUP BY date ORDER BY date"
                    ),
                }
            }
        ),
        required_params=(
            _POSTHOG_PROJECT_PARAM,
            TemplateParam(
                name="EVENT_NAME",
                label="Event",
                description="Select event to track",
                type="dynamic-select",
                dynamic_endpoint="/api/projects/{PROJECT_ID}/event_definitions/",
                depends_on="PROJECT_ID",
            ),
        ),
        is_time_series=True,
    ),
    MetricTemplate(
        template_id="posthog-active-users",
        label="Active Users",
        description="Count of active users in a project",
        integration_id="posthog",
        metric_type="number",
        default_unit="users",
        metric_endpoint="/api/projects/{PROJECT_ID}/persons/",
        required_params=(_POSTHOG_PROJECT_PARAM,),
    ),
)


# ---------------------------------------------------------------------------
# YouTube
# ---------------------------------------------------------------------------

_YOUTUBE_REPORTS = (
    "https://youtubeanalytics.googleapis.com/v2/reports"
    "?ids=channel==MINE&metrics={metric}&dimensions=day&startDate=28daysAgo&endDate=today"
)

_YOUTUBE_VIDEO_PARAM = TemplateParam(
    name="VIDEO_ID",
    label="Select Video",
    description="Select a video from your channel",
    type="dynamic-select",
    dynamic_endpoint="/youtube/v3/search?part=snippet&forMine=true&type=video&maxResults=50",
)


def _youtube_template(template_id: str, label: str, description: str, metric: str, unit: str, video: bool = False) -> MetricTemplate:
    endpoint = _YOUTUBE_REPORTS.format(metric=metric)
    if video:
        endpoint += "&filters=video=={VIDEO_ID}"
    return MetricTemplate(
        template_id=template_id,
        label=label,
        description=description,
        integration_id="youtube",
        metric_type="number",
        default_unit=unit,
        metric_endpoint=endpoint,
        required_params=(_YOUTUBE_VIDEO_PARAM,) if video else (),
        is_time_series=True,
        default_poll_frequency="daily",
    )


_YOUTUBE_TEMPLATES = (
    _youtube_template(
        "youtube-channel-views-timeseries",
        "Channel Views (Time Series)",
        "Daily view counts for your entire channel",
        "views",
        "views",
    ),
    _youtube_template(
        "youtube-channel-likes-timeseries",
        "Channel Likes (Time Series)",
        "Daily likes across all your videos",
        "likes",
        "likes",
    ),
    _youtube_template(
        "youtube-channel-subscribers-timeseries",
        "Subscribers Gained (Time Series)",
        "Daily subscriber growth for your channel",
        "subscribersGained",
        "subscribers",
    ),
    _youtube_template(
        "youtube-video-views-timeseries",
        "Video Views (Time Series)",
        "Daily view counts for a specific video",
        "views",
        "views",
        video=True,
    ),
    _youtube_template(
        "youtube-video-likes-timeseries",
        "Video Likes (Time Series)",
        "Daily likes for a specific video",
        "likes",
        "likes",
        video=True,
    ),
)


# ---------------------------------------------------------------------------
# Linear
# ---------------------------------------------------------------------------

_LINEAR_ISSUE_FIELDS = """
id title createdAt completedAt canceledAt
state { name type }
estimate priority
project { id name }
assignee { id name }
team { id name }
"""


def _linear_extraction_prompt(structure: str, extra_dimension: str) -> str:
    return f"""
RESPONSE STRUCTURE: {structure}

TRACK: issues completed over time.

TIMESTAMP: use "completedAt". Skip issues where completedAt is null.
Normalize to midnight UTC.

VALUE: 1 per completed issue, summed per day.

DIMENSIONS:
- estimate: story points (number or null)
- priority: 0-4
- {extra_dimension}
"""


def _linear_template(
    template_id: str,
    label: str,
    description: str,
    query: str,
    variables: dict[str, Any],
    structure: str,
    extra_dimension: str,
    param: TemplateParam,
) -> MetricTemplate:
    return MetricTemplate(
        template_id=template_id,
        label=label,
        description=description,
        integration_id="linear",
        metric_type="number",
        default_unit="issues",
        metric_endpoint="/graphql",
        method="POST",
        request_body=_graphql_body(query, variables),
        required_params=(param,),
        is_time_series=True,
        default_poll_frequency="daily",
        extraction_prompt=_linear_extraction_prompt(structure, extra_dimension),
    )


_LINEAR_TEMPLATES = (
    _linear_template(
        "linear-user-issues",
        "User Issues",
        "Track issues for a team member across all teams and projects",
        "query UserIssues($userId: ID!) { issues(filter: { assignee: { id: { eq: $userId } } }, "
        "first: 250, orderBy: updatedAt) { nodes { " + _LINEAR_ISSUE_FIELDS + " } } }",
        {"userId": "{USER_ID}"},
        "data.issues.nodes[]",
        "teamName: team.name, projectName: project.name",
        TemplateParam(
            name="USER_ID",
            label="Team Member",
            description="Select a team member to track their issues",
            type="dynamic-select",
            dynamic_endpoint="/graphql",
            dynamic_method="POST",
            dynamic_body=_graphql_body("query Users { users(first: 100) { nodes { id name email active } } }"),
        ),
    ),
    _linear_template(
        "linear-project-issues",
        "Project Issues",
        "Track all issues in a specific project across teams",
        "query ProjectIssues($projectId: String!) { project(id: $projectId) { id name state "
        "issues(first: 250, orderBy: updatedAt) { nodes { " + _LINEAR_ISSUE_FIELDS + " } } } }",
        {"projectId": "{PROJECT_ID}"},
        "data.project.issues.nodes[]",
        "teamName: team.name, assigneeName: assignee.name",
        TemplateParam(
            name="PROJECT_ID",
            label="Project",
            description="Select a project to track",
            type="dynamic-select",
            dynamic_endpoint="/graphql",
            dynamic_method="POST",
            dynamic_body=_graphql_body("query Projects { projects(first: 100) { nodes { id name state } } }"),
        ),
    ),
    _linear_template(
        "linear-team-issues",
        "Team Issues",
        "Track all issues for a specific team",
        "query TeamIssues($teamId: String!) { team(id: $teamId) { id name "
        "issues(first: 250, orderBy: updatedAt) { nodes { " + _LINEAR_ISSUE_FIELDS + " } } } }",
        {"teamId": "{TEAM_ID}"},
        "data.team.issues.nodes[]",
        "projectName: project.name, assigneeName: assignee.name",
        TemplateParam(
            name="TEAM_ID",
            label="Team",
            description="Select a team to track",
            type="dynamic-select",
            dynamic_endpoint="/graphql",
            dynamic_method="POST",
            dynamic_body=_graphql_body("query Teams { teams(first: 100) { nodes { id name key } } }"),
        ),
    ),
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

ALL_TEMPLATES: tuple[MetricTemplate, ...] = (
    *_GITHUB_TEMPLATES,
    *_GSHEETS_TEMPLATES,
    *_POSTHOG_TEMPLATES,
    *_YOUTUBE_TEMPLATES,
    *_LINEAR_TEMPLATES,
)

_TEMPLATES_BY_ID = {template.template_id: template for template in ALL_TEMPLATES}


def get_template(template_id: str) -> MetricTemplate | None:
    return _TEMPLATES_BY_ID.get(template_id)


def get_templates_for_integration(integration_id: str) -> list[MetricTemplate]:
    return [template for template in ALL_TEMPLATES if template.integration_id == integration_id]

"""Pydantic models for Jira request payloads.

One model per operation category. Tool arguments arrive in snake_case;
to_payload() produces the camelCase body the Jira REST API expects.
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class JiraPayload(BaseModel):
    """Base model: accepts snake_case or camelCase, dumps camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# Issue Schemas

def _names(values: list[str]) -> list[dict]:
    return [{"name": value} for value in values]


def _as_list(value: Any) -> Any:
    """Accept a single string where a list of strings is expected."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class IssueCreate(JiraPayload):
    """Fields for creating an issue."""

    project_key: str = Field(..., min_length=1, description="Project key or ID")
    issue_type: str = Field(..., min_length=1, description="Issue type name or ID")
    summary: str = Field(..., min_length=1)
    description: Optional[str] = None
    assignee: Optional[str] = None
    reporter: Optional[str] = None
    priority: Optional[str] = None
    labels: list[str] = Field(default_factory=list)
    components: list[str] = Field(default_factory=list)
    epic_key: Optional[str] = None
    original_estimate: Optional[str] = None
    remaining_estimate: Optional[str] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("labels", "components", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> Any:
        return _as_list(value)

    def to_payload(self, epic_link_field: Optional[str] = None) -> dict:
        project = {"id": self.project_key} if self.project_key.isdigit() else {"key": self.project_key}
        issue_type = {"id": self.issue_type} if self.issue_type.isdigit() else {"name": self.issue_type}
        fields: dict[str, Any] = {
            "project": project,
            "issuetype": issue_type,
            "summary": self.summary,
        }
        if self.description:
            fields["description"] = self.description
        if self.assignee:
            fields["assignee"] = {"name": self.assignee}
        if self.reporter:
            fields["reporter"] = {"name": self.reporter}
        if self.priority:
            fields["priority"] = {"name": self.priority}
        if self.labels:
            fields["labels"] = list(self.labels)
        if self.components:
            fields["components"] = _names(self.components)
        if self.original_estimate or self.remaining_estimate:
            tracking = {}
            if self.original_estimate:
                tracking["originalEstimate"] = self.original_estimate
            if self.remaining_estimate:
                tracking["remainingEstimate"] = self.remaining_estimate
            fields["timetracking"] = tracking
        if self.epic_key and epic_link_field:
            fields[epic_link_field] = self.epic_key
        fields.update(self.custom_fields)
        return {"fields": fields}


class IssueUpdate(JiraPayload):
    """Fields for updating an issue. Only provided fields are sent."""

    issue_key: str = Field(..., min_length=1)
    summary: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    assignee: Optional[str] = None
    priority: Optional[str] = None
    # Empty lists mean "unchanged"; clear via custom_fields={"labels": []}
    labels: list[str] = Field(default_factory=list)
    components: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("labels", "components", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> Any:
        return _as_list(value)

    def to_payload(self) -> dict:
        fields: dict[str, Any] = {}
        if self.summary is not None:
            fields["summary"] = self.summary
        if self.description is not None:
            fields["description"] = self.description
        if self.assignee is not None:
            fields["assignee"] = {"name": self.assignee}
        if self.priority is not None:
            fields["priority"] = {"name": self.priority}
        if self.labels:
            fields["labels"] = list(self.labels)
        if self.components:
            fields["components"] = _names(self.components)
        fields.update(self.custom_fields)
        return {"fields": fields}


class SearchRequest(JiraPayload):
    """JQL search request."""

    jql: str = Field(..., min_length=1)
    start_at: int = Field(0, ge=0)
    max_results: Optional[int] = Field(None, ge=1)
    fields: list[str] = Field(default_factory=list)
    expand: list[str] = Field(default_factory=list)


# Comment / Worklog Schemas

class CommentInput(JiraPayload):
    body: str = Field(..., min_length=1)
    visibility: Optional[dict[str, str]] = None


class WorklogInput(JiraPayload):
    time_spent: str = Field(..., min_length=1, description="Jira duration, e.g. 2h 30m")
    comment: Optional[str] = None
    started: Optional[str] = Field(None, description="ISO timestamp, e.g. 2024-01-31T09:00:00.000+0000")


# Version Schemas

class VersionCreate(JiraPayload):
    name: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)
    description: Optional[str] = None
    release_date: Optional[str] = None
    start_date: Optional[str] = None
    archived: Optional[bool] = None
    released: Optional[bool] = None


# Link Schemas

class IssueLinkCreate(JiraPayload):
    link_type: str = Field(..., min_length=1)
    inward_issue: str = Field(..., min_length=1)
    outward_issue: str = Field(..., min_length=1)
    comment: Optional[str] = None

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {
            "type": {"name": self.link_type},
            "inwardIssue": {"key": self.inward_issue},
            "outwardIssue": {"key": self.outward_issue},
        }
        if self.comment:
            payload["comment"] = {"body": self.comment}
        return payload


class RemoteLinkCreate(JiraPayload):
    url: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    summary: Optional[str] = None

    def to_payload(self) -> dict:
        return {"object": self.model_dump(by_alias=True, exclude_none=True)}


# Agile Schemas

class SprintCreate(JiraPayload):
    name: str = Field(..., min_length=1)
    origin_board_id: int
    goal: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class SprintUpdate(JiraPayload):
    name: Optional[str] = None
    goal: Optional[str] = None
    state: Optional[Literal["active", "closed", "future"]] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

"""Object type discriminator and payload models for observability objects."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


class ObjectType(str, Enum):
    """Discriminator selecting which payload shape a document holds."""

    NONE = "none"
    NOTEBOOK = "notebook"
    SAVED_QUERY = "saved_query"
    SAVED_VISUALIZATION = "saved_visualization"
    OPERATIONAL_PANEL = "operational_panel"

    @property
    def tag(self) -> str:
        return self.value

    @classmethod
    def from_tag_or_default(cls, tag: str | None) -> ObjectType:
        """Return the type for a tag, or NONE for anything unrecognized."""
        if tag is None:
            return cls.NONE
        try:
            return cls(tag)
        except ValueError:
            return cls.NONE


class PayloadModel(BaseModel):
    """Base for payload sub-structures.

    Accepts both wire aliases and field names, skips unknown keys with a log
    line, and serializes with aliases and without unset optional values.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _log_unknown_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            known: set[str] = set()
            for name, info in cls.model_fields.items():
                known.add(name)
                if info.alias:
                    known.add(info.alias)
            for key in data:
                if key not in known:
                    logger.info("observability:%s Skipping unknown field %s", cls.__name__, key)
        return data

    def to_raw(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# --- Notebook ---


class ParagraphInput(PayloadModel):
    input_type: str | None = Field(default=None, alias="inputType")
    input_text: str | None = Field(default=None, alias="inputText")


class ParagraphOutput(PayloadModel):
    output_type: str | None = Field(default=None, alias="outputType")
    result: str | None = None
    execution_time: str | None = None


class Paragraph(PayloadModel):
    id: str | None = None
    date_created: str | None = Field(default=None, alias="dateCreated")
    date_modified: str | None = Field(default=None, alias="dateModified")
    input: ParagraphInput | None = None
    output: list[ParagraphOutput] | None = None


class Notebook(PayloadModel):
    """A notebook: an ordered list of input/output paragraphs."""

    object_type: ClassVar[ObjectType] = ObjectType.NOTEBOOK

    name: str | None = None
    date_created: str | None = Field(default=None, alias="dateCreated")
    date_modified: str | None = Field(default=None, alias="dateModified")
    backend: str | None = None
    paragraphs: list[Paragraph] | None = None


# --- Saved query ---


class TimeFilter(PayloadModel):
    start: str | None = None
    end: str | None = None
    text: str | None = None


class FieldFilter(PayloadModel):
    text: str | None = None
    tokens: list[str] | None = None


class SortFilter(PayloadModel):
    sort_field: str | None = Field(default=None, alias="sortField")
    sort_order: Literal["asc", "desc"] | None = Field(default=None, alias="sortOrder")


class Filters(PayloadModel):
    time_filter: TimeFilter | None = Field(default=None, alias="timeFilter")
    field_filter: FieldFilter | None = Field(default=None, alias="fieldFilter")
    sort_filters: list[SortFilter] | None = Field(default=None, alias="sortFilters")


class SavedQuery(PayloadModel):
    """An event-explorer query with its time, field and sort filters."""

    object_type: ClassVar[ObjectType] = ObjectType.SAVED_QUERY

    name: str | None = None
    description: str | None = None
    query: str | None = None
    queried_fields: FieldFilter | None = Field(default=None, alias="queriedFields")
    filters: Filters | None = None


# --- Saved visualization ---


class SavedVisualization(PayloadModel):
    """A query plus the date range and field selection used to chart it."""

    object_type: ClassVar[ObjectType] = ObjectType.SAVED_VISUALIZATION

    name: str | None = None
    description: str | None = None
    query: str | None = None
    type: str | None = None
    selected_date_range: TimeFilter | None = None
    selected_fields: FieldFilter | None = None


# --- Operational panel ---


class PanelTimeRange(PayloadModel):
    to: str | None = None
    from_: str | None = Field(default=None, alias="from")


class PanelQueryFilter(PayloadModel):
    query: str | None = None
    language: str | None = None


class PanelVisualization(PayloadModel):
    id: str | None = None
    saved_visualization_id: str | None = Field(default=None, alias="savedVisualizationId")
    x: int | None = None
    y: int | None = None
    w: int | None = None
    h: int | None = None


class OperationalPanel(PayloadModel):
    """A dashboard panel laying out saved visualizations on a grid."""

    object_type: ClassVar[ObjectType] = ObjectType.OPERATIONAL_PANEL

    name: str | None = None
    application_id: str | None = Field(default=None, alias="applicationId")
    time_range: PanelTimeRange | None = Field(default=None, alias="timeRange")
    query_filter: PanelQueryFilter | None = Field(default=None, alias="queryFilter")
    visualizations: list[PanelVisualization] | None = None

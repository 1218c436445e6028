"""
Pydantic Data Transfer Objects (DTOs) for the harvest API.

Field names follow the camelCase wire format of the dashboard; the Python
attribute names are snake_case and either form is accepted on input.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from reddit_harvester.models.job import SortMode, TimeRange


class HarvestRequest(BaseModel):
    """Body of ``POST /harvest``. Omitted communities resolve to the configured defaults."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    communities: Optional[List[str]] = None
    time_range: TimeRange = TimeRange.DAY
    sort_mode: SortMode = SortMode.TOP
    posts_per_community: int = Field(default=25, gt=0, le=100)
    fast_mode: bool = True
    user_id: str = "anonymous"

    @field_validator("communities")
    @classmethod
    def strip_blank_communities(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        cleaned = [name.strip() for name in value if name and name.strip()]
        return cleaned or None


class HarvestResponse(BaseModel):
    """Result of a harvest. ``data`` holds tagged post and comment dicts."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    data: List[Dict[str, Any]] = Field(default_factory=list)
    summary: Optional[Dict[str, Any]] = None
    outcomes: List[Dict[str, Any]] = Field(default_factory=list)
    job_id: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None

"""Pydantic schemas for the candidate search filter API."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SeniorityLevel(str, Enum):
    JUNIOR = "junior"
    MID = "mid"
    SENIOR = "senior"
    STAFF = "staff"
    PRINCIPAL = "principal"


class StartTimeline(str, Enum):
    """Threshold-based start time: "I need someone within X"."""
    IMMEDIATE = "immediate"
    TWO_WEEKS = "two_weeks"
    ONE_MONTH = "one_month"
    THREE_MONTHS = "three_months"
    SIX_MONTHS = "six_months"
    ONE_YEAR = "one_year"


START_TIMELINE_ORDER = [t.value for t in StartTimeline]


class ProficiencyLevel(str, Enum):
    LEARNING = "learning"
    PROFICIENT = "proficient"
    EXPERT = "expert"


class TeamFocus(str, Enum):
    GREENFIELD = "greenfield"
    MIGRATION = "migration"
    MAINTENANCE = "maintenance"
    SCALING = "scaling"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SkillRequirement(_CamelModel):
    """Skill requirement with per-skill proficiency thresholds."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    skill: str
    min_proficiency: Optional[ProficiencyLevel] = None            # Hard filter
    preferred_min_proficiency: Optional[ProficiencyLevel] = None  # Ranking boost


class SalaryRange(_CamelModel):
    min: float = Field(..., gt=0)
    max: float = Field(..., gt=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "SalaryRange":
        if self.min > self.max:
            raise ValueError("min must be less than or equal to max")
        return self


class SearchFilterRequest(_CamelModel):
    """Inbound search filter request.

    Wire names are camelCase. Fields beyond the enumerated ones are kept as
    extras: string-valued required*/preferred* extras become inference
    properties, and every extra counts as user-explicit.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    # Seniority
    required_seniority_level: Optional[SeniorityLevel] = None
    preferred_seniority_level: Optional[SeniorityLevel] = None

    # Skills
    required_skills: Optional[list[SkillRequirement]] = None
    preferred_skills: Optional[list[SkillRequirement]] = None

    # Start timeline
    required_max_start_time: Optional[StartTimeline] = None
    preferred_max_start_time: Optional[StartTimeline] = None

    # Timezone (glob patterns, e.g. "America/*")
    required_timezone: Optional[list[str]] = None
    preferred_timezone: Optional[list[str]] = None

    # Salary
    required_max_salary: Optional[float] = Field(default=None, gt=0)
    required_min_salary: Optional[float] = Field(default=None, gt=0)
    preferred_salary_range: Optional[SalaryRange] = None

    # Context
    team_focus: Optional[TeamFocus] = None

    # Domains
    required_domains: Optional[list[str]] = None
    preferred_domains: Optional[list[str]] = None

    # Pagination
    limit: Optional[int] = Field(default=None, ge=1, le=100)
    offset: Optional[int] = Field(default=None, ge=0)

    # Rules the user switched off
    overridden_rule_ids: Optional[list[str]] = None

    @model_validator(mode="after")
    def _check_cross_field_bounds(self) -> "SearchFilterRequest":
        if self.required_min_salary is not None and self.required_max_salary is not None:
            if self.required_min_salary > self.required_max_salary:
                raise ValueError("requiredMinSalary must be less than or equal to requiredMaxSalary")
        if self.preferred_max_start_time and self.required_max_start_time:
            preferred = START_TIMELINE_ORDER.index(self.preferred_max_start_time.value)
            required = START_TIMELINE_ORDER.index(self.required_max_start_time.value)
            if preferred > required:
                raise ValueError("preferredMaxStartTime must be at or faster than requiredMaxStartTime")
        return self

    def to_fields(self) -> dict:
        """Defined request fields by wire name, enums as plain strings."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

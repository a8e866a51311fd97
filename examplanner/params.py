from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .settings import get_settings


class ColumnMapping(BaseModel):
    """Which input columns hold the fields the engine needs. Blank means the default name."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    student_id_column: str = Field(default="student_id", alias="studentIdColumn")
    course_id_column: str = Field(default="course_id", alias="courseIdColumn")
    hall_id_column: str = Field(default="hall", alias="hallIdColumn")
    capacity_column: str = Field(default="capacity", alias="capacityColumn")
    group_column: str = Field(default="group", alias="groupColumn")

    @field_validator("*", mode="before")
    @classmethod
    def blank_means_default(cls, value, info):
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value.strip() if isinstance(value, str) else value


class PenaltyWeights(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    conflict: float = Field(default=1000.0, ge=0)
    min_gap: float = Field(default=10.0, ge=0, alias="minGap")
    same_day: float = Field(default=0.0, ge=0, alias="sameDay")
    capacity_shortfall: float = Field(default=500.0, ge=0, alias="capacityShortfall")
    unassigned: float = Field(default=5000.0, ge=0)
    # only steers construction; never part of a trial's total penalty
    balance: float = Field(default=1.0, ge=0)


class RunParams(BaseModel):
    """Request record for one scheduling run.

    Accepts snake_case field names or the camelCase names used by the JSON contract
    (``examStartDate``, ``slotsPerDay``, ``minGap`` ...). Range checks that have a dedicated
    error type (slot counts, tries, date order) are left to the builders and the search engine.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    exam_start_date: date = Field(alias="examStartDate")
    exam_end_date: date = Field(alias="examEndDate")
    slots_per_day: int = Field(default=2, alias="slotsPerDay")
    slot_times: List[str] = Field(default_factory=list, alias="slotTimes")
    slot_duration: int = Field(default=180, alias="slotDuration")
    holidays: List[date] = Field(default_factory=list)
    exclude_weekends: bool = Field(default=False, alias="excludeWeekends")
    day_start: str = Field(default_factory=lambda: get_settings().default_day_start, alias="dayStart")
    day_end: str = Field(default_factory=lambda: get_settings().default_day_end, alias="dayEnd")
    timezone: str = Field(default_factory=lambda: get_settings().default_timezone)

    tries: int = Field(default_factory=lambda: get_settings().default_tries)
    seed: int = 0
    min_gap: int = Field(default=0, ge=0, alias="minGap")
    gap_scope: Literal["absolute", "day"] = Field(default="absolute", alias="gapScope")
    workers: int = Field(default_factory=lambda: get_settings().workers, ge=1)
    early_exit: bool = Field(default=True, alias="earlyExit")

    allowed_slots: Optional[List[Dict[str, Any]]] = Field(default=None, alias="allowedSlots")
    column_mapping: ColumnMapping = Field(default_factory=ColumnMapping, alias="columnMapping")
    penalty_weights: PenaltyWeights = Field(default_factory=PenaltyWeights, alias="penaltyWeights")

    @field_validator("allowed_slots", mode="before")
    @classmethod
    def frame_to_records(cls, value):
        if isinstance(value, pd.DataFrame):
            return value.fillna("").astype(str).to_dict(orient="records")
        return value

    @field_validator("timezone", mode="before")
    @classmethod
    def blank_timezone_is_default(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return get_settings().default_timezone
        return value

    @field_validator("column_mapping", "penalty_weights", mode="before")
    @classmethod
    def none_is_default(cls, value, info):
        if value is None:
            return ColumnMapping() if info.field_name == "column_mapping" else PenaltyWeights()
        return value

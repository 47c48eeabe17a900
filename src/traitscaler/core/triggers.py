#!/usr/bin/env python3
"""
Trigger validation and translation to backend scaler entries.

Each trigger is checked on its own. A trigger with any problem is left out
of delegation and its problems become warnings; other triggers are not
affected and no warning ever fails the reconcile.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..models.trait import AutoscaleTrait, TriggerSpec
from .constants import (
    MetricTargetType,
    RESOURCE_METRIC_TRIGGERS,
    TriggerType,
    WARNING_DAYS_FORMAT,
    WARNING_DURATION_FORMAT,
    WARNING_DURATION_REQUIRED,
    WARNING_METRIC_TARGET_TYPE_REQUIRED,
    WARNING_METRIC_TARGET_TYPE_UNKNOWN,
    WARNING_REPLICAS_FORMAT,
    WARNING_REPLICAS_REQUIRED,
    WARNING_START_AT_FORMAT,
    WARNING_START_AT_REQUIRED,
    WARNING_SUM_EXCEEDS_24_HOURS,
    WARNING_TARGET_WORKLOAD_NOT_SET,
    WARNING_THRESHOLD_FORMAT,
    WARNING_THRESHOLD_REQUIRED,
    WARNING_UNSUPPORTED_TRIGGER_TYPE,
)
from .metrics import TRIGGER_WARNINGS

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"

_START_AT = re.compile(r"^(\d{1,2}):(\d{2})$")
_HOURS = re.compile(r"^(\d+)h?$")

WEEKDAYS = {
    "sunday": 0, "sun": 0,
    "monday": 1, "mon": 1,
    "tuesday": 2, "tue": 2,
    "wednesday": 3, "wed": 3,
    "thursday": 4, "thu": 4,
    "friday": 5, "fri": 5,
    "saturday": 6, "sat": 6,
}


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


@dataclass(frozen=True)
class ResourceMetricTrigger:
    """A validated cpu, memory, storage or ephemeral-storage trigger"""
    trigger_type: TriggerType
    name: str
    metric_target_type: MetricTargetType
    threshold: float

    def to_scaler(self) -> Dict[str, Any]:
        return {
            "type": self.trigger_type.value,
            "name": self.name,
            "metadata": {
                "type": self.metric_target_type.value,
                "value": _format_number(self.threshold),
            },
        }


@dataclass(frozen=True)
class CronTrigger:
    """A validated schedule trigger holding `replicas` from start for `duration_hours`"""
    name: str
    start_hour: int
    start_minute: int
    duration_hours: int
    replicas: int
    timezone: str = DEFAULT_TIMEZONE
    days: Tuple[int, ...] = ()
    trigger_type: TriggerType = field(default=TriggerType.CRON, init=False)

    def to_scaler(self) -> Dict[str, Any]:
        day_of_week = ",".join(str(day) for day in self.days) or "*"
        end_hour = self.start_hour + self.duration_hours
        return {
            "type": self.trigger_type.value,
            "name": self.name,
            "metadata": {
                "timezone": self.timezone,
                "start": f"{self.start_minute} {self.start_hour} * * {day_of_week}",
                "end": f"{self.start_minute} {end_hour} * * {day_of_week}",
                "desiredReplicas": str(self.replicas),
            },
        }


ValidatedTrigger = Union[ResourceMetricTrigger, CronTrigger]


@dataclass
class ValidationReport:
    valid: List[ValidatedTrigger] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _parse_non_negative_int(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() and raw >= 0 else None
    text = str(raw).strip()
    return int(text) if text.isdecimal() else None


def parse_start_at(raw: Any) -> Optional[Tuple[int, int]]:
    """Parse HH:MM into (hour, minute)"""
    match = _START_AT.match(str(raw).strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def parse_duration_hours(raw: Any) -> Optional[int]:
    """Parse an hour count such as 2 or "2h" """
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return _parse_non_negative_int(raw)
    match = _HOURS.match(str(raw).strip())
    return int(match.group(1)) if match else None


def parse_days(raw: Any) -> Optional[Tuple[int, ...]]:
    """Parse "Monday, Friday" into cron day-of-week numbers"""
    days: List[int] = []
    for part in str(raw).split(","):
        day = WEEKDAYS.get(part.strip().lower())
        if day is None:
            return None
        if day not in days:
            days.append(day)
    return tuple(days)


def validate_cron(spec: TriggerSpec, name: str) -> Tuple[Optional[CronTrigger], List[str]]:
    problems: List[str] = []

    start = None
    start_at = spec.value("start_at")
    if start_at is None:
        problems.append(WARNING_START_AT_REQUIRED)
    else:
        start = parse_start_at(start_at)
        if start is None:
            problems.append(WARNING_START_AT_FORMAT)

    duration_hours = None
    duration = spec.value("duration")
    if duration is None:
        problems.append(WARNING_DURATION_REQUIRED)
    else:
        duration_hours = parse_duration_hours(duration)
        if duration_hours is None:
            problems.append(WARNING_DURATION_FORMAT)

    replicas = None
    raw_replicas = spec.value("replicas")
    if raw_replicas is None:
        problems.append(WARNING_REPLICAS_REQUIRED)
    else:
        replicas = _parse_non_negative_int(raw_replicas)
        if replicas is None:
            problems.append(WARNING_REPLICAS_FORMAT)

    days: Tuple[int, ...] = ()
    raw_days = spec.value("days")
    if raw_days is not None:
        parsed_days = parse_days(raw_days)
        if parsed_days is None:
            problems.append(WARNING_DAYS_FORMAT)
        else:
            days = parsed_days

    if start is not None and duration_hours is not None and start[0] + duration_hours >= 24:
        problems.append(WARNING_SUM_EXCEEDS_24_HOURS)

    if problems:
        return None, problems

    return CronTrigger(
        name=name,
        start_hour=start[0],
        start_minute=start[1],
        duration_hours=duration_hours,
        replicas=replicas,
        timezone=str(spec.value("timezone") or DEFAULT_TIMEZONE),
        days=days,
    ), []


def _metric_validator(trigger_type: TriggerType) -> Callable[[TriggerSpec, str], Tuple[Optional[ResourceMetricTrigger], List[str]]]:
    def validate(spec: TriggerSpec, name: str) -> Tuple[Optional[ResourceMetricTrigger], List[str]]:
        problems: List[str] = []

        target_type = None
        raw_target_type = spec.value("metric_target_type")
        if raw_target_type is None:
            problems.append(WARNING_METRIC_TARGET_TYPE_REQUIRED)
        else:
            target_type = next(
                (t for t in MetricTargetType if t.value.lower() == str(raw_target_type).strip().lower()),
                None,
            )
            if target_type is None:
                problems.append(WARNING_METRIC_TARGET_TYPE_UNKNOWN)

        threshold = None
        raw_threshold = spec.value("threshold")
        if raw_threshold is None:
            problems.append(WARNING_THRESHOLD_REQUIRED)
        elif not isinstance(raw_threshold, bool):
            try:
                threshold = float(raw_threshold)
            except (TypeError, ValueError):
                threshold = None
        if raw_threshold is not None and (threshold is None or not math.isfinite(threshold) or threshold <= 0):
            problems.append(WARNING_THRESHOLD_FORMAT)

        if problems:
            return None, problems
        return ResourceMetricTrigger(
            trigger_type=trigger_type,
            name=name,
            metric_target_type=target_type,
            threshold=threshold,
        ), []

    return validate


VALIDATORS: Dict[TriggerType, Callable[[TriggerSpec, str], Tuple[Optional[ValidatedTrigger], List[str]]]] = {
    TriggerType.CRON: validate_cron,
    **{trigger_type: _metric_validator(trigger_type) for trigger_type in RESOURCE_METRIC_TRIGGERS},
}


class TriggerValidator:
    """Validates every trigger of a trait independently"""

    def validate_trigger(self, spec: TriggerSpec, name: str) -> Tuple[Optional[ValidatedTrigger], List[str]]:
        try:
            trigger_type = TriggerType(spec.type_name)
        except ValueError:
            return None, [f"{WARNING_UNSUPPORTED_TRIGGER_TYPE} {spec.type!r}"]
        return VALIDATORS[trigger_type](spec, name)

    def validate(self, trait: AutoscaleTrait) -> ValidationReport:
        """
        Validate the trait's triggers and its target binding

        Returns:
            ValidationReport with the usable triggers in declaration order and
            every warning, each prefixed with the trigger it belongs to
        """
        report = ValidationReport()
        if trait.target_workload is None:
            report.warnings.append(WARNING_TARGET_WORKLOAD_NOT_SET)

        for index, spec in enumerate(trait.spec.triggers):
            name = str(spec.name) if spec.name else f"{spec.type_name or 'trigger'}-{index}"
            validated, problems = self.validate_trigger(spec, name)
            for problem in problems:
                TRIGGER_WARNINGS.labels(trigger_type=spec.type_name or "unknown").inc()
                report.warnings.append(f"trigger {name}: {problem}")
            if validated is not None:
                report.valid.append(validated)

        if report.warnings:
            logger.info(f"Trait {trait.key}: {len(report.warnings)} validation warning(s)")
        return report

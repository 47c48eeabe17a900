#!/usr/bin/env python3
"""
Base event classes for operator-visible controller events
"""

from datetime import datetime, timezone
from typing import Dict, Any
from dataclasses import dataclass, field
from enum import Enum


class EventType(str, Enum):
    """Event reasons emitted by the trait controller"""

    # Failures
    CANNOT_LOCATE_PARENT = "CannotLocateParent"
    CANNOT_LOCATE_WORKLOAD = "CannotLocateWorkload"
    CANNOT_FETCH_CHILD_RESOURCES = "CannotFetchChildResources"
    CANNOT_ADOPT_RESOURCE = "CannotAdoptResource"
    CANNOT_RESOLVE_TARGET = "CannotResolveTarget"
    CANNOT_SYNC_SCALED_OBJECT = "CannotSyncScaledObject"
    RECONCILE_ERROR = "ReconcileError"
    INVALID_TRAIT = "InvalidTrait"

    # Warnings
    TRIGGER_VALIDATION_WARNING = "TriggerValidationWarning"

    # Progress
    SCALED_OBJECT_SYNCED = "ScaledObjectSynced"


class Severity(str, Enum):
    """Kubernetes event types"""
    NORMAL = "Normal"
    WARNING = "Warning"


@dataclass
class Event:
    """A single operator-visible event about a trait"""

    event_type: EventType
    message: str
    severity: Severity = Severity.NORMAL
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def warning(cls, event_type: EventType, message: str, **data: Any) -> "Event":
        return cls(event_type=event_type, message=message, severity=Severity.WARNING, data=data)

    @classmethod
    def normal(cls, event_type: EventType, message: str, **data: Any) -> "Event":
        return cls(event_type=event_type, message=message, severity=Severity.NORMAL, data=data)

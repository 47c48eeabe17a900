#!/usr/bin/env python3
"""
Shared constants for the autoscaler trait pipeline
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType


class TriggerType(str, Enum):
    """Supported trigger types on an autoscaler trait"""
    CPU = "cpu"
    MEMORY = "memory"
    STORAGE = "storage"
    EPHEMERAL_STORAGE = "ephemeral-storage"
    CRON = "cron"


RESOURCE_METRIC_TRIGGERS = frozenset({
    TriggerType.CPU,
    TriggerType.MEMORY,
    TriggerType.STORAGE,
    TriggerType.EPHEMERAL_STORAGE,
})


class MetricTargetType(str, Enum):
    """Metric target types accepted by resource-metric triggers"""
    UTILIZATION = "Utilization"
    VALUE = "Value"
    AVERAGE_VALUE = "AverageValue"


class Stage(str, Enum):
    """Pipeline stages of a single reconcile"""
    START = "Start"
    LOCATED = "Located"
    WORKLOAD_FETCHED = "WorkloadFetched"
    CHILDREN_DISCOVERED = "ChildrenDiscovered"
    OWNERSHIP_ADOPTED = "OwnershipAdopted"
    TARGET_RESOLVED = "TargetResolved"
    TRIGGERS_VALIDATED = "TriggersValidated"
    DELEGATED = "Delegated"
    DONE = "Done"
    FAILED = "Failed"


@dataclass(frozen=True)
class BackendKind:
    """Identity of a backend scaling object kind"""
    kind: str
    api_version: str


SCALED_OBJECT = "ScaledObject"

# Populated once, read-only afterwards
BACKEND_KINDS = MappingProxyType({
    SCALED_OBJECT: BackendKind(kind=SCALED_OBJECT, api_version="keda.k8s.io/v1alpha1"),
})

# Kinds eligible as the scale target, matched on kind name
SCALABLE_KINDS = frozenset({"Deployment", "StatefulSet"})

# Ancestor kinds that act as the event target of a trait
APP_CONTEXT_KINDS = frozenset({"ApplicationConfiguration", "Application"})

WORKLOAD_DEFINITION_API_VERSION = "core.oam.dev/v1alpha2"
WORKLOAD_DEFINITION_KIND = "WorkloadDefinition"

REQUEUE_AFTER_SECONDS = 30.0

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "traitscaler"

# Condition vocabulary
CONDITION_SYNCED = "Synced"
REASON_RECONCILE_SUCCESS = "ReconcileSuccess"
REASON_RECONCILE_ERROR = "ReconcileError"

# Validation warnings
WARNING_TARGET_WORKLOAD_NOT_SET = "Spec.targetWorkload is not set"
WARNING_START_AT_REQUIRED = "startAt required: spec.triggers.condition.startAt: Required value"
WARNING_START_AT_FORMAT = "startAt wrong format, which should be like `12:01`"
WARNING_DURATION_REQUIRED = "duration required: spec.triggers.condition.duration: Required value"
WARNING_DURATION_FORMAT = "duration wrong format, which should be an hour count like `2`"
WARNING_REPLICAS_REQUIRED = "replicas required: spec.triggers.condition.replicas: Required value"
WARNING_REPLICAS_FORMAT = "replicas wrong format, which should be a non-negative integer"
WARNING_SUM_EXCEEDS_24_HOURS = (
    "sum of start and duration more than 24 hours: "
    "the sum of the start hour and the duration hour has to be less than 24 hours"
)
WARNING_DAYS_FORMAT = "days must be a comma separated list of weekday names"
WARNING_METRIC_TARGET_TYPE_REQUIRED = "metricTargetType required: spec.triggers.metricTargetType: Required value"
WARNING_METRIC_TARGET_TYPE_UNKNOWN = "metricTargetType must be one of Utilization, Value, AverageValue"
WARNING_THRESHOLD_REQUIRED = "threshold required: spec.triggers.threshold: Required value"
WARNING_THRESHOLD_FORMAT = "threshold must be a positive number"
WARNING_UNSUPPORTED_TRIGGER_TYPE = "unsupported trigger type"
WARNING_NO_VALID_TRIGGERS = "no valid triggers, scaled object not synchronized"

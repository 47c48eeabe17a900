#!/usr/bin/env python3
"""
Prometheus metrics for the trait controller
"""

from prometheus_client import Counter, Gauge, Histogram

RECONCILE_TOTAL = Counter(
    'traitscaler_reconcile_total',
    'Reconcile invocations by outcome',
    ['outcome']
)
RECONCILE_DURATION = Histogram(
    'traitscaler_reconcile_duration_seconds',
    'Time taken for a single reconcile'
)
RECONCILE_FAILURES = Counter(
    'traitscaler_reconcile_failures_total',
    'Failed reconciles by the last stage reached',
    ['stage']
)
OWNERSHIP_PATCHES = Counter(
    'traitscaler_ownership_patches_total',
    'Owner reference patches applied to workloads and child resources'
)
SCALED_OBJECT_WRITES = Counter(
    'traitscaler_scaled_object_writes_total',
    'Scaled object synchronizations by result',
    ['result']
)
TRIGGER_WARNINGS = Counter(
    'traitscaler_trigger_warnings_total',
    'Trigger validation warnings by trigger type',
    ['trigger_type']
)
EVENTS_EMITTED = Counter(
    'traitscaler_events_emitted_total',
    'Kubernetes events emitted by the controller',
    ['reason', 'type']
)
QUEUE_DEPTH = Gauge(
    'traitscaler_queue_depth',
    'Trait keys waiting to be reconciled'
)

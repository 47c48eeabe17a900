#!/usr/bin/env python3
"""
Condition/Event reporter: persists trait status conditions and emits
Kubernetes events on the trait's event target.
"""

import logging
from typing import Any, Dict, List, Optional

from kubernetes import client

from ..core.constants import CONDITION_SYNCED, REASON_RECONCILE_ERROR, REASON_RECONCILE_SUCCESS
from ..core.errors import ReconcileError, ResourceStoreError
from ..core.metrics import EVENTS_EMITTED
from ..models.trait import AutoscaleTrait, Condition
from .base import Event, EventType

logger = logging.getLogger(__name__)


class ConditionReporter:
    """Records reconcile outcomes on trait status and as Kubernetes events"""

    def __init__(self, store, component: str = "Autoscaler"):
        """
        Initialize the reporter

        Args:
            store: ResourceStore used for status patches and event writes
            component: event source component, also recorded as the controller annotation
        """
        self.store = store
        self.component = component

    def record(self, event_target: Dict[str, Any], event: Event) -> None:
        """Emit an event on the target object; failures are logged, never raised"""
        metadata = event_target.get("metadata", {})
        namespace = metadata.get("namespace") or "default"
        body = client.CoreV1Event(
            metadata=client.V1ObjectMeta(
                generate_name=f"{metadata.get('name', 'trait')}.",
                namespace=namespace,
                annotations={"controller": self.component, **{k: str(v) for k, v in event.data.items()}},
            ),
            involved_object=client.V1ObjectReference(
                api_version=event_target.get("apiVersion"),
                kind=event_target.get("kind"),
                name=metadata.get("name"),
                namespace=namespace,
                uid=metadata.get("uid"),
                resource_version=metadata.get("resourceVersion"),
            ),
            reason=event.event_type.value,
            message=event.message,
            type=event.severity.value,
            source=client.V1EventSource(component=self.component),
            first_timestamp=event.timestamp,
            last_timestamp=event.timestamp,
            count=1,
        )
        try:
            self.store.create_event(namespace, body)
        except ResourceStoreError as e:
            logger.warning(f"Failed to record event {event.event_type.value} on {metadata.get('name')}: {e}")
            return
        EVENTS_EMITTED.labels(reason=event.event_type.value, type=event.severity.value).inc()

    def report_error(self, trait: AutoscaleTrait, event_target: Dict[str, Any], error: ReconcileError) -> None:
        """Record a failed reconcile: warning event plus a Synced=False condition"""
        self.record(event_target, Event.warning(EventType(error.reason), str(error), stage=error.stage.value))
        condition = Condition(
            type=CONDITION_SYNCED,
            status="False",
            reason=REASON_RECONCILE_ERROR,
            message=str(error),
        )
        self._patch_status(trait, condition, warnings=None)

    def report_warnings(self, trait: AutoscaleTrait, event_target: Dict[str, Any], warnings: List[str]) -> None:
        """Emit one warning event per warning not already on the trait's status"""
        known = set(trait.status.warnings)
        for warning in warnings:
            if warning not in known:
                self.record(event_target, Event.warning(EventType.TRIGGER_VALIDATION_WARNING, warning))

    def report_success(self, trait: AutoscaleTrait, warnings: List[str]) -> None:
        """Record a completed reconcile with its accumulated warnings"""
        condition = Condition(
            type=CONDITION_SYNCED,
            status="True",
            reason=REASON_RECONCILE_SUCCESS,
        )
        self._patch_status(trait, condition, warnings=warnings)

    def _patch_status(self, trait: AutoscaleTrait, condition: Condition, warnings: Optional[List[str]]) -> None:
        existing = trait.status.get_condition(condition.type)
        if existing is not None and existing.same_state(condition):
            condition = existing

        conditions = [c for c in trait.status.conditions if c.type != condition.type] + [condition]
        new_warnings = trait.status.warnings if warnings is None else list(warnings)

        if conditions == trait.status.conditions and new_warnings == trait.status.warnings:
            logger.debug(f"Status of {trait.key} unchanged")
            return

        body = {
            "status": {
                "conditions": [c.to_dict() for c in conditions],
                "warnings": new_warnings,
            }
        }
        try:
            self.store.patch_status(trait.api_version, trait.kind, trait.name, trait.namespace, body)
        except ResourceStoreError as e:
            logger.error(f"Failed to patch status of {trait.key}: {e}")
            return
        trait.status.conditions = conditions
        trait.status.warnings = new_warnings

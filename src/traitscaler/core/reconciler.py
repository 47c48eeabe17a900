#!/usr/bin/env python3
"""
Autoscaler trait reconciler.

One call reconciles one trait from its persisted state:
locate -> fetch workload -> discover children -> adopt -> resolve target
-> validate triggers -> delegate. Every step reads only what is stored in
the cluster, so a failed run is simply repeated after the fixed requeue.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..events.base import Event, EventType
from ..events.recorder import ConditionReporter
from ..models.references import TargetWorkloadRef
from ..models.trait import AutoscaleTrait
from .constants import REQUEUE_AFTER_SECONDS, Stage
from .delegation import CREATED, SKIPPED, UPDATED, ScaleDelegator, SyncResult
from .discovery import ChildResourceDiscoverer
from .errors import (
    MalformedTraitError,
    ReconcileError,
    ResourceNotFoundError,
    ResourceStoreError,
    WorkloadNotFoundError,
)
from .locator import ResourceLocator
from .logging_config import log_section
from .metrics import RECONCILE_DURATION, RECONCILE_FAILURES, RECONCILE_TOTAL
from .ownership import AdoptionResult, OwnershipReconciler
from .target import TargetResolution, TargetWorkloadResolver
from .triggers import TriggerValidator

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconcile"""
    key: str
    stage: Stage
    requeue_after: Optional[float] = None
    error: Optional[str] = None
    failed_after: Optional[Stage] = None
    warnings: List[str] = field(default_factory=list)
    event_target_source: Optional[str] = None
    target: Optional[TargetWorkloadRef] = None
    adoption: Optional[AdoptionResult] = None
    resolution: Optional[TargetResolution] = None
    sync: Optional[SyncResult] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "stage": self.stage.value,
            "succeeded": self.succeeded,
            "requeue_after": self.requeue_after,
            "error": self.error,
            "failed_after": self.failed_after.value if self.failed_after else None,
            "warnings": list(self.warnings),
            "target": str(self.target) if self.target else None,
            "scaled_object": self.sync.action if self.sync else None,
        }


class AutoscalerReconciler:
    """Runs the reconcile pipeline for autoscaler traits"""

    def __init__(
        self,
        store,
        reporter: Optional[ConditionReporter] = None,
        trait_api_version: str = "standard.oam.dev/v1alpha1",
        trait_kind: str = "Autoscaler",
        requeue_after: float = REQUEUE_AFTER_SECONDS,
    ):
        """
        Initialize the reconciler

        Args:
            store: ResourceStore giving access to the cluster
            reporter: condition/event reporter, built on the same store when omitted
            trait_api_version: apiVersion of the trait resource
            trait_kind: kind of the trait resource
            requeue_after: fixed delay before a failed reconcile is retried
        """
        self.store = store
        self.reporter = reporter or ConditionReporter(store, component=trait_kind)
        self.trait_api_version = trait_api_version
        self.trait_kind = trait_kind
        self.requeue_after = requeue_after

        self.locator = ResourceLocator(store)
        self.discoverer = ChildResourceDiscoverer(store)
        self.ownership = OwnershipReconciler(store)
        self.resolver = TargetWorkloadResolver(store)
        self.validator = TriggerValidator()
        self.delegator = ScaleDelegator(store)

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        start = time.monotonic()
        try:
            result = self._reconcile(namespace, name)
        finally:
            RECONCILE_DURATION.observe(time.monotonic() - start)

        if result.succeeded:
            RECONCILE_TOTAL.labels(outcome="success").inc()
        else:
            RECONCILE_TOTAL.labels(outcome="failure").inc()
            RECONCILE_FAILURES.labels(stage=(result.failed_after or result.stage).value).inc()
        return result

    def _reconcile(self, namespace: str, name: str) -> ReconcileResult:
        key = f"{namespace}/{name}"
        logger.info(f"Reconciling {self.trait_kind} {key}...")

        try:
            raw = self.store.get(self.trait_api_version, self.trait_kind, name, namespace)
        except ResourceNotFoundError:
            # Deleted between enqueue and now; garbage collection handles the rest
            logger.info(f"{self.trait_kind} {key} no longer exists")
            return ReconcileResult(key=key, stage=Stage.DONE)
        except ResourceStoreError as e:
            logger.error(f"Failed to get {self.trait_kind} {key}: {e}")
            return ReconcileResult(
                key=key, stage=Stage.FAILED, requeue_after=self.requeue_after,
                error=str(e), failed_after=Stage.START,
            )

        try:
            trait = AutoscaleTrait.from_resource(raw)
        except ValidationError as e:
            return self._reject_malformed(key, raw, e)

        result = ReconcileResult(key=key, stage=Stage.START)
        event_target = trait.as_object()
        try:
            log_section(logger, "LOCATE")
            located = self.locator.locate_event_target(trait)
            event_target = located.obj
            result.event_target_source = located.source
            result.stage = Stage.LOCATED

            workload = self.locator.fetch_workload(trait)
            result.stage = Stage.WORKLOAD_FETCHED

            log_section(logger, "DISCOVER")
            resources = self.discoverer.discover(workload)
            result.stage = Stage.CHILDREN_DISCOVERED

            log_section(logger, "ADOPT")
            result.adoption = self.ownership.adopt(trait, resources)
            result.stage = Stage.OWNERSHIP_ADOPTED

            log_section(logger, "RESOLVE TARGET")
            result.resolution = self.resolver.resolve(trait, resources)
            result.target = trait.target_workload
            result.stage = Stage.TARGET_RESOLVED

            log_section(logger, "VALIDATE TRIGGERS")
            report = self.validator.validate(trait)
            result.warnings = list(report.warnings)
            result.stage = Stage.TRIGGERS_VALIDATED

            log_section(logger, "DELEGATE")
            result.sync = self.delegator.sync(trait, trait.target_workload, report.valid)
            result.stage = Stage.DELEGATED
        except ReconcileError as e:
            return self._fail(trait, event_target, result, e)
        except Exception as e:
            logger.exception(f"Unexpected error reconciling {key}")
            return self._fail(trait, event_target, result, ReconcileError("unexpected error", result.stage, e))

        sync = result.sync
        if sync.action == SKIPPED and sync.reason not in result.warnings:
            result.warnings.append(sync.reason)

        self.reporter.report_warnings(trait, event_target, result.warnings)
        self.reporter.report_success(trait, result.warnings)
        if sync.action in (CREATED, UPDATED):
            self.reporter.record(
                event_target,
                Event.normal(EventType.SCALED_OBJECT_SYNCED, f"{self.delegator.backend.kind} {sync.name} {sync.action}"),
            )

        result.stage = Stage.DONE
        logger.info(f"Reconciled {key} (target={result.target}, scaled object {sync.action})")
        return result

    def _fail(
        self,
        trait: AutoscaleTrait,
        event_target: Dict[str, Any],
        result: ReconcileResult,
        error: ReconcileError,
    ) -> ReconcileResult:
        logger.error(f"Reconcile of {trait.key} failed after {error.stage.value}: {error}")
        # Workload lookups are reported on the trait itself
        target = trait.as_object() if isinstance(error, WorkloadNotFoundError) else event_target
        self.reporter.report_error(trait, target, error)

        result.failed_after = error.stage
        result.stage = Stage.FAILED
        result.error = str(error)
        result.requeue_after = self.requeue_after
        return result

    def _reject_malformed(self, key: str, raw: Dict[str, Any], cause: ValidationError) -> ReconcileResult:
        """Report a trait that does not parse, using only its identity and status"""
        error = MalformedTraitError(f"malformed {self.trait_kind}", Stage.START, cause)
        result = ReconcileResult(key=key, stage=Stage.START)

        shell = None
        for fields in (("apiVersion", "kind", "metadata", "status"), ("apiVersion", "kind", "metadata")):
            try:
                shell = AutoscaleTrait.from_resource({f: raw[f] for f in fields if raw.get(f) is not None})
                break
            except ValidationError:
                continue

        if shell is None:
            logger.error(f"{self.trait_kind} {key} is malformed and cannot be reported on: {cause}")
            result.failed_after = Stage.START
            result.stage = Stage.FAILED
            result.error = str(error)
            result.requeue_after = self.requeue_after
            return result
        return self._fail(shell, shell.as_object(), result, error)

#!/usr/bin/env python3
"""
Delegated scale synchronizer: upserts the backend scaling object of a trait
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models.references import TargetWorkloadRef
from ..models.trait import AutoscaleTrait
from .constants import (
    BACKEND_KINDS,
    BackendKind,
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    SCALED_OBJECT,
    Stage,
    WARNING_NO_VALID_TRIGGERS,
    WARNING_TARGET_WORKLOAD_NOT_SET,
)
from .errors import DelegationError, ResourceNotFoundError, ResourceStoreError
from .metrics import SCALED_OBJECT_WRITES
from .ownership import desired_owner_references
from .triggers import ValidatedTrigger

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
SKIPPED = "skipped"

# Spec fields owned by the controller; anything else on the object is left alone
MANAGED_SPEC_FIELDS = ("scaleTargetRef", "minReplicaCount", "maxReplicaCount", "triggers")


@dataclass(frozen=True)
class SyncResult:
    name: str
    action: str
    reason: str = ""


class ScaleDelegator:
    """Keeps one backend scaling object per trait in line with its validated triggers"""

    def __init__(self, store, backend: BackendKind = BACKEND_KINDS[SCALED_OBJECT]):
        self.store = store
        self.backend = backend

    @staticmethod
    def object_name(trait: AutoscaleTrait) -> str:
        return trait.name

    def build_spec(
        self,
        trait: AutoscaleTrait,
        target: TargetWorkloadRef,
        triggers: List[ValidatedTrigger],
    ) -> Dict[str, Any]:
        spec: Dict[str, Any] = {
            "scaleTargetRef": target.to_dict(),
            "triggers": [trigger.to_scaler() for trigger in triggers],
        }
        if trait.spec.min_replicas is not None:
            spec["minReplicaCount"] = trait.spec.min_replicas
        if trait.spec.max_replicas is not None:
            spec["maxReplicaCount"] = trait.spec.max_replicas
        return spec

    def build(
        self,
        trait: AutoscaleTrait,
        target: TargetWorkloadRef,
        triggers: List[ValidatedTrigger],
    ) -> Dict[str, Any]:
        """Full backend object for a trait"""
        return {
            "apiVersion": self.backend.api_version,
            "kind": self.backend.kind,
            "metadata": {
                "name": self.object_name(trait),
                "namespace": trait.namespace,
                "labels": {MANAGED_BY_LABEL: MANAGED_BY_VALUE},
                "ownerReferences": [trait.owner_reference().to_dict()],
            },
            "spec": self.build_spec(trait, target, triggers),
        }

    def sync(
        self,
        trait: AutoscaleTrait,
        target: Optional[TargetWorkloadRef],
        triggers: List[ValidatedTrigger],
    ) -> SyncResult:
        """
        Create or update the backend object; unchanged objects are not written.

        Raises:
            DelegationError: when the backend object cannot be read or written
        """
        name = self.object_name(trait)
        if target is None:
            logger.info(f"Skipping {self.backend.kind} for {trait.key}: no target workload")
            return SyncResult(name=name, action=SKIPPED, reason=WARNING_TARGET_WORKLOAD_NOT_SET)
        if not triggers:
            logger.info(f"Skipping {self.backend.kind} for {trait.key}: no valid triggers")
            return SyncResult(name=name, action=SKIPPED, reason=WARNING_NO_VALID_TRIGGERS)

        desired = self.build(trait, target, triggers)
        try:
            existing = self.store.get(self.backend.api_version, self.backend.kind, name, trait.namespace)
        except ResourceNotFoundError:
            existing = None
        except ResourceStoreError as e:
            raise DelegationError(f"failed to read {self.backend.kind} {name}", Stage.TRIGGERS_VALIDATED, e) from e

        try:
            if existing is None:
                self.store.create(desired, field_manager=trait.uid or None)
                action = CREATED
            else:
                patch = self._patch_for(trait, existing, desired)
                if patch is None:
                    action = UNCHANGED
                else:
                    self.store.patch(
                        self.backend.api_version, self.backend.kind, name, trait.namespace, patch,
                        field_manager=trait.uid or None,
                    )
                    action = UPDATED
        except ResourceStoreError as e:
            raise DelegationError(f"failed to write {self.backend.kind} {name}", Stage.TRIGGERS_VALIDATED, e) from e

        SCALED_OBJECT_WRITES.labels(result=action).inc()
        if action != UNCHANGED:
            logger.info(f"{self.backend.kind} {trait.namespace}/{name} {action} with {len(triggers)} trigger(s)")
        return SyncResult(name=name, action=action)

    def _patch_for(
        self,
        trait: AutoscaleTrait,
        existing: Dict[str, Any],
        desired: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Merge patch bringing ``existing`` in line with ``desired``, or None when nothing differs"""
        metadata = existing.get("metadata", {})
        existing_spec = existing.get("spec") or {}
        desired_spec = desired["spec"]

        spec_patch = {
            key: desired_spec.get(key)
            for key in MANAGED_SPEC_FIELDS
            if existing_spec.get(key) != desired_spec.get(key)
        }

        labels = metadata.get("labels") or {}
        label_patch = {
            key: value for key, value in desired["metadata"]["labels"].items() if labels.get(key) != value
        }

        current_refs = metadata.get("ownerReferences") or []
        refs = desired_owner_references(current_refs, trait.owner_reference())

        if not spec_patch and not label_patch and refs == current_refs:
            return None

        patch: Dict[str, Any] = {"metadata": {"resourceVersion": metadata.get("resourceVersion")}}
        if spec_patch:
            patch["spec"] = spec_patch
        if label_patch:
            patch["metadata"]["labels"] = label_patch
        if refs != current_refs:
            patch["metadata"]["ownerReferences"] = refs
        return patch

#!/usr/bin/env python3
"""
Ownership reconciler: adopts the workload and its children under the trait
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..models.references import ObjectRef, OwnerReference
from ..models.trait import AutoscaleTrait
from .constants import Stage
from .errors import OwnershipPatchError, ResourceStoreError
from .metrics import OWNERSHIP_PATCHES

logger = logging.getLogger(__name__)


def desired_owner_references(current: List[Dict[str, Any]], owner: OwnerReference) -> List[Dict[str, Any]]:
    """
    Compute the owner reference list that makes ``owner`` the only controller.

    Existing controller references are demoted, never removed. The owner's own
    reference keeps its position when already present, so applying the result
    again yields the same list.
    """
    wanted = owner.to_dict()
    refs: List[Dict[str, Any]] = []
    present = False
    for ref in current:
        if ref.get("uid") == owner.uid:
            if not present:
                refs.append(wanted)
                present = True
            continue
        if ref.get("controller"):
            ref = dict(ref, controller=False)
        refs.append(dict(ref))
    if not present:
        refs.append(wanted)
    return refs


@dataclass
class AdoptionResult:
    patched: List[ObjectRef] = field(default_factory=list)
    unchanged: List[ObjectRef] = field(default_factory=list)


class OwnershipReconciler:
    """Re-parents resources under a trait with merge patches owned by the trait"""

    def __init__(self, store):
        self.store = store

    def adopt(self, trait: AutoscaleTrait, resources: List[Dict[str, Any]]) -> AdoptionResult:
        """
        Make the trait the controlling owner of every resource, in order.

        Stops at the first failed patch. Patches already applied stay applied;
        the next reconcile converges the rest.

        Raises:
            OwnershipPatchError: when a patch is rejected
        """
        owner = trait.owner_reference()
        field_manager = trait.uid or None
        result = AdoptionResult()

        for resource in resources:
            metadata = resource.setdefault("metadata", {})
            ref = ObjectRef.of(resource)
            current = metadata.get("ownerReferences") or []
            desired = desired_owner_references(current, owner)

            if desired == current:
                result.unchanged.append(ref)
                continue

            body = {
                "metadata": {
                    "ownerReferences": desired,
                    "resourceVersion": metadata.get("resourceVersion"),
                }
            }
            try:
                patched = self.store.patch(
                    resource["apiVersion"],
                    resource["kind"],
                    metadata["name"],
                    metadata.get("namespace"),
                    body,
                    field_manager=field_manager,
                )
            except ResourceStoreError as e:
                logger.error(f"Failed to set ownerReference for {ref.kind}/{ref.name}: {e}")
                raise OwnershipPatchError(
                    f"failed to set ownerReference for {ref.kind}/{ref.name}", Stage.CHILDREN_DISCOVERED, e
                ) from e

            metadata["ownerReferences"] = desired
            metadata["resourceVersion"] = patched.get("metadata", {}).get("resourceVersion", metadata.get("resourceVersion"))
            OWNERSHIP_PATCHES.inc()
            result.patched.append(ref)
            logger.info(f"Adopted {ref.kind}/{ref.name} under {trait.kind}/{trait.name}")

        return result

#!/usr/bin/env python3
"""
Target workload resolver: pins one scalable resource per trait
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ..models.references import TargetWorkloadRef
from ..models.trait import AutoscaleTrait
from .constants import SCALABLE_KINDS, Stage
from .errors import ResourceStoreError, TargetPersistError

logger = logging.getLogger(__name__)

PERSISTED = "persisted"
SCALABLE = "scalable"
WORKLOAD = "workload"
UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class TargetResolution:
    target: Optional[TargetWorkloadRef]
    source: str
    written: bool = False


class TargetWorkloadResolver:
    """Selects the scale target from the discovered resources and persists it on the trait"""

    def __init__(self, store, scalable_kinds: FrozenSet[str] = SCALABLE_KINDS):
        self.store = store
        self.scalable_kinds = scalable_kinds

    def select(self, resources: List[Dict[str, Any]]) -> Tuple[Optional[TargetWorkloadRef], str]:
        """First resource of a scalable kind wins; a lone workload is the target by default"""
        for resource in resources:
            if resource.get("kind") in self.scalable_kinds:
                return TargetWorkloadRef.of(resource), SCALABLE
        if len(resources) == 1:
            return TargetWorkloadRef.of(resources[0]), WORKLOAD
        return None, UNRESOLVED

    def resolve(self, trait: AutoscaleTrait, resources: List[Dict[str, Any]]) -> TargetResolution:
        """
        Return the trait's target, selecting and persisting one when unset.

        A target already recorded on the trait is kept as is, so later changes
        in discovery order do not move the binding.

        Raises:
            TargetPersistError: when the selected target cannot be written to the trait
        """
        if trait.target_workload is not None:
            return TargetResolution(target=trait.target_workload, source=PERSISTED)

        target, source = self.select(resources)
        if target is None:
            logger.info(f"No scalable resource found for {trait.key}")
            return TargetResolution(target=None, source=UNRESOLVED)

        body = {
            "metadata": {"resourceVersion": trait.metadata.resource_version},
            "spec": {"targetWorkload": target.to_dict()},
        }
        try:
            updated = self.store.patch(
                trait.api_version, trait.kind, trait.name, trait.namespace, body,
                field_manager=trait.uid or None,
            )
        except ResourceStoreError as e:
            raise TargetPersistError("failed to persist spec.targetWorkload", Stage.OWNERSHIP_ADOPTED, e) from e

        trait.spec.target_workload = target
        trait.metadata.resource_version = updated.get("metadata", {}).get(
            "resourceVersion", trait.metadata.resource_version
        )
        logger.info(f"Target workload of {trait.key} set to {target.kind}/{target.name}")
        return TargetResolution(target=target, source=source, written=True)

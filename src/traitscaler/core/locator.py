#!/usr/bin/env python3
"""
Resource locator: resolves a trait to its event target and its workload
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional

from ..models.trait import AutoscaleTrait
from .constants import APP_CONTEXT_KINDS, Stage
from .errors import ParentLocateError, ResourceNotFoundError, ResourceStoreError, WorkloadNotFoundError

logger = logging.getLogger(__name__)

FOUND = "found"
FALLBACK = "fallback"


@dataclass(frozen=True)
class LocatedEventTarget:
    """Object that events are recorded on, tagged with how it was obtained"""
    obj: Dict[str, Any]
    source: str

    @property
    def found(self) -> bool:
        return self.source == FOUND


class ResourceLocator:
    """Finds the application context above a trait and the workload it references"""

    def __init__(self, store, context_kinds: FrozenSet[str] = APP_CONTEXT_KINDS, max_depth: int = 5):
        self.store = store
        self.context_kinds = context_kinds
        self.max_depth = max_depth

    def locate_event_target(self, trait: AutoscaleTrait) -> LocatedEventTarget:
        """
        Walk owner references upward from the trait to the nearest application context.

        Falls back to the trait itself when no ancestor of a context kind exists
        or the referenced ancestor is gone.

        Raises:
            ParentLocateError: when an ancestor could not be read for another reason
        """
        owners = [ref.to_dict() for ref in trait.metadata.owner_references]
        visited = {trait.uid}

        for _ in range(self.max_depth):
            if not owners:
                break
            context_ref = next((o for o in owners if o.get("kind") in self.context_kinds), None)
            next_ref = context_ref or self._controller_of(owners)
            if next_ref is None or next_ref.get("uid") in visited:
                break
            visited.add(next_ref.get("uid"))

            try:
                ancestor = self.store.get(
                    next_ref["apiVersion"], next_ref["kind"], next_ref["name"], trait.namespace
                )
            except ResourceNotFoundError:
                logger.info(f"Owner {next_ref['kind']}/{next_ref['name']} of {trait.key} no longer exists")
                break
            except ResourceStoreError as e:
                raise ParentLocateError("failed to locate the parent application context", Stage.START, e) from e

            if context_ref is not None:
                return LocatedEventTarget(obj=ancestor, source=FOUND)
            owners = ancestor.get("metadata", {}).get("ownerReferences") or []

        logger.info(f"There is no parent resource for {trait.key}, recording events on the trait")
        return LocatedEventTarget(obj=trait.as_object(), source=FALLBACK)

    @staticmethod
    def _controller_of(owners: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        for owner in owners:
            if owner.get("controller"):
                return owner
        return owners[0] if owners else None

    def fetch_workload(self, trait: AutoscaleTrait) -> Dict[str, Any]:
        """
        Resolve the trait's workload reference

        Raises:
            WorkloadNotFoundError: when the reference is unset or cannot be read
        """
        ref = trait.spec.workload_ref
        if ref is None or not ref.is_set:
            raise WorkloadNotFoundError("spec.workloadRef is not set", Stage.LOCATED)

        try:
            workload = self.store.get(ref.api_version, ref.kind, ref.name, trait.namespace)
        except ResourceStoreError as e:
            raise WorkloadNotFoundError(f"cannot locate workload {ref.kind}/{ref.name}", Stage.LOCATED, e) from e

        logger.debug(f"Fetched workload {ref.kind}/{ref.name} for {trait.key}")
        return workload

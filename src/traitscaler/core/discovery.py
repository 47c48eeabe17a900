#!/usr/bin/env python3
"""
Child resource discovery.

A workload's definition lists the kinds it generates. Every resource of
those kinds that names the workload as an owner is a child. The result is
ordered: definition order across kinds, (creationTimestamp, name) within a
kind, with the workload itself appended last.
"""

import logging
from typing import Any, Dict, List, Optional

from .constants import Stage, WORKLOAD_DEFINITION_API_VERSION, WORKLOAD_DEFINITION_KIND
from .errors import ChildResourceError, ResourceNotFoundError, ResourceStoreError

logger = logging.getLogger(__name__)


def format_label_selector(selector: Optional[Dict[str, str]]) -> Optional[str]:
    if not selector:
        return None
    return ",".join(f"{key}={value}" for key, value in sorted(selector.items()))


def _sort_key(resource: Dict[str, Any]):
    metadata = resource.get("metadata", {})
    return metadata.get("creationTimestamp") or "", metadata.get("name") or ""


class ChildResourceDiscoverer:
    """Enumerates resources produced by a workload"""

    def __init__(self, store):
        self.store = store

    def definition_name(self, workload: Dict[str, Any]) -> str:
        """Name of the workload's definition: <plural>.<group>, or <plural> for the core group"""
        plural, group = self.store.resource_name(workload["apiVersion"], workload["kind"])
        return f"{plural}.{group}" if group else plural

    def child_resource_kinds(self, workload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Child kinds declared by the workload's definition; none when it has no definition"""
        name = self.definition_name(workload)
        try:
            definition = self.store.get(WORKLOAD_DEFINITION_API_VERSION, WORKLOAD_DEFINITION_KIND, name)
        except ResourceNotFoundError:
            logger.info(f"No workload definition {name}, assuming no child resources")
            return []
        return definition.get("spec", {}).get("childResourceKinds") or []

    def discover(self, workload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Return the ordered child resources of a workload followed by the workload

        Raises:
            ChildResourceError: when the definition or a child kind cannot be read
        """
        metadata = workload.get("metadata", {})
        workload_uid = metadata.get("uid")
        namespace = metadata.get("namespace")

        try:
            kinds = self.child_resource_kinds(workload)
            children: List[Dict[str, Any]] = []
            seen = {workload_uid}
            for child_kind in kinds:
                items = self.store.list(
                    child_kind["apiVersion"],
                    child_kind["kind"],
                    namespace=namespace,
                    label_selector=format_label_selector(child_kind.get("selector")),
                )
                owned = [
                    item for item in items
                    if any(ref.get("uid") == workload_uid
                           for ref in item.get("metadata", {}).get("ownerReferences") or [])
                ]
                for item in sorted(owned, key=_sort_key):
                    # Ensure the apiVersion/kind are present on list items
                    item.setdefault("apiVersion", child_kind["apiVersion"])
                    item.setdefault("kind", child_kind["kind"])
                    uid = item.get("metadata", {}).get("uid")
                    if uid in seen:
                        continue
                    seen.add(uid)
                    children.append(item)
        except ResourceStoreError as e:
            raise ChildResourceError("failed to fetch the workload child resources", Stage.WORKLOAD_FETCHED, e) from e

        logger.debug(f"Discovered {len(children)} child resources of {workload.get('kind')}/{metadata.get('name')}")
        return children + [workload]

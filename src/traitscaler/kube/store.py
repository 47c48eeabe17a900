#!/usr/bin/env python3
"""
Resource store: get/list/patch/create access to arbitrary kinds.

Every object crosses this boundary as a plain dict. Writes that carry
``metadata.resourceVersion`` are rejected by the API server when the object
changed in between; that surfaces as ResourceConflictError and the caller
retries the whole reconcile.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError as KindNotFoundError

from ..core.errors import ResourceConflictError, ResourceNotFoundError, ResourceStoreError

logger = logging.getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"


def _translate(e: ApiException, what: str) -> ResourceStoreError:
    status = getattr(e, "status", None)
    if status == 404:
        return ResourceNotFoundError(f"{what} not found")
    if status == 409:
        return ResourceConflictError(f"{what} was modified concurrently")
    return ResourceStoreError(f"{what}: {getattr(e, 'reason', None) or e}", status=status)


def _describe(api_version: str, kind: str, name: Optional[str] = None, namespace: Optional[str] = None) -> str:
    ident = f"{kind}.{api_version}"
    if name:
        ident += f" {namespace + '/' if namespace else ''}{name}"
    return ident


class ResourceStore:
    """Thin dict-in/dict-out wrapper around the dynamic client and the core events API"""

    def __init__(self, dynamic_client: DynamicClient):
        self.dynamic = dynamic_client
        self.core_api = client.CoreV1Api(dynamic_client.client)

    def _resource(self, api_version: str, kind: str):
        try:
            return self.dynamic.resources.get(api_version=api_version, kind=kind)
        except KindNotFoundError as e:
            raise ResourceNotFoundError(f"kind {kind}.{api_version} is not served") from e

    def resource_name(self, api_version: str, kind: str) -> Tuple[str, str]:
        """Return (plural, group) of a kind, as used in definition names"""
        resource = self._resource(api_version, kind)
        return resource.name, resource.group or ""

    def get(self, api_version: str, kind: str, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        resource = self._resource(api_version, kind)
        try:
            return self.dynamic.get(resource, name=name, namespace=namespace).to_dict()
        except ApiException as e:
            raise _translate(e, _describe(api_version, kind, name, namespace)) from e

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        resource = self._resource(api_version, kind)
        try:
            result = self.dynamic.get(resource, namespace=namespace, label_selector=label_selector)
        except ApiException as e:
            raise _translate(e, _describe(api_version, kind)) from e
        return result.to_dict().get("items", [])

    def patch(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: Optional[str],
        body: Dict[str, Any],
        field_manager: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Apply a JSON merge patch"""
        resource = self._resource(api_version, kind)
        try:
            return self.dynamic.patch(
                resource,
                body=body,
                name=name,
                namespace=namespace,
                content_type=MERGE_PATCH,
                field_manager=field_manager,
            ).to_dict()
        except ApiException as e:
            raise _translate(e, _describe(api_version, kind, name, namespace)) from e

    def patch_status(
        self,
        api_version: str,
        kind: str,
        name: str,
        namespace: Optional[str],
        body: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Apply a JSON merge patch to the status sub-resource"""
        resource = self._resource(api_version, kind)
        try:
            return self.dynamic.patch(
                resource.status,
                body=body,
                name=name,
                namespace=namespace,
                content_type=MERGE_PATCH,
            ).to_dict()
        except ApiException as e:
            raise _translate(e, _describe(api_version, kind, name, namespace) + " status") from e

    def create(self, body: Dict[str, Any], field_manager: Optional[str] = None) -> Dict[str, Any]:
        api_version, kind = body["apiVersion"], body["kind"]
        metadata = body.get("metadata", {})
        resource = self._resource(api_version, kind)
        try:
            return self.dynamic.create(
                resource,
                body=body,
                namespace=metadata.get("namespace"),
                field_manager=field_manager,
            ).to_dict()
        except ApiException as e:
            raise _translate(e, _describe(api_version, kind, metadata.get("name"), metadata.get("namespace"))) from e

    def create_event(self, namespace: str, event: client.CoreV1Event) -> None:
        try:
            self.core_api.create_namespaced_event(namespace=namespace, body=event)
        except ApiException as e:
            raise _translate(e, f"event in {namespace}") from e

    def watch(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Yield (event type, object) pairs until the server closes the watch"""
        resource = self._resource(api_version, kind)
        try:
            for event in self.dynamic.watch(resource, namespace=namespace, timeout=timeout):
                yield event["type"], event["object"].to_dict()
        except ApiException as e:
            raise _translate(e, _describe(api_version, kind) + " watch") from e

#!/usr/bin/env python3
"""
Shared fixtures and mocks for traitscaler tests
"""

import copy
import itertools
from typing import Any, Dict, List, Optional, Tuple

import pytest

from traitscaler.core.errors import ResourceConflictError, ResourceNotFoundError, ResourceStoreError

TRAIT_API_VERSION = "standard.oam.dev/v1alpha1"
TRAIT_KIND = "Autoscaler"
OAM_API_VERSION = "core.oam.dev/v1alpha2"
SCALED_OBJECT_API_VERSION = "keda.k8s.io/v1alpha1"


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end reconcile against the mock resource store")


def merge_patch(target: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """RFC 7386 merge patch"""
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            merge_patch(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


class MockResourceStore:
    """In-memory stand-in for the cluster with resourceVersion checks"""

    def __init__(self):
        self.objects: Dict[Tuple[str, str, Optional[str], str], Dict[str, Any]] = {}
        self.patches: List[Dict[str, Any]] = []
        self.status_patches: List[Dict[str, Any]] = []
        self.created: List[Dict[str, Any]] = []
        self.events: List[Any] = []
        self.watch_events: List[Tuple[str, Dict[str, Any]]] = []
        self.failures: Dict[Tuple[str, str], Exception] = {}
        self._versions = itertools.count(1)
        self._uids = itertools.count(1)

    @staticmethod
    def _key(api_version: str, kind: str, name: str, namespace: Optional[str]):
        return api_version, kind, namespace, name

    def _check(self, op: str, kind: str) -> None:
        error = self.failures.get((op, kind))
        if error is not None:
            raise error

    def fail(self, op: str, kind: str, error: Optional[Exception] = None) -> None:
        """Make every `op` call on `kind` raise"""
        self.failures[(op, kind)] = error or ResourceStoreError(f"{op} {kind} failed", status=500)

    def add(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Helper to seed an object"""
        obj = copy.deepcopy(obj)
        metadata = obj.setdefault("metadata", {})
        metadata.setdefault("uid", f"uid-{next(self._uids)}")
        metadata.setdefault("resourceVersion", str(next(self._versions)))
        key = self._key(obj["apiVersion"], obj["kind"], metadata["name"], metadata.get("namespace"))
        self.objects[key] = obj
        return copy.deepcopy(obj)

    def find(self, api_version: str, kind: str, name: str, namespace: Optional[str] = "default") -> Dict[str, Any]:
        """Direct read for assertions, bypassing failure injection"""
        return self.objects[self._key(api_version, kind, name, namespace)]

    @property
    def write_count(self) -> int:
        return len(self.patches) + len(self.status_patches) + len(self.created) + len(self.events)

    def resource_name(self, api_version: str, kind: str) -> Tuple[str, str]:
        group = api_version.split("/", 1)[0] if "/" in api_version else ""
        return kind.lower() + "s", group

    def get(self, api_version: str, kind: str, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        self._check("get", kind)
        obj = self.objects.get(self._key(api_version, kind, name, namespace))
        if obj is None:
            raise ResourceNotFoundError(f"{kind} {namespace}/{name} not found")
        return copy.deepcopy(obj)

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        self._check("list", kind)
        wanted = dict(part.split("=", 1) for part in label_selector.split(",")) if label_selector else {}
        items = []
        for (obj_api_version, obj_kind, obj_namespace, _), obj in self.objects.items():
            if (obj_api_version, obj_kind) != (api_version, kind):
                continue
            if namespace is not None and obj_namespace != namespace:
                continue
            labels = obj["metadata"].get("labels") or {}
            if all(labels.get(k) == v for k, v in wanted.items()):
                items.append(copy.deepcopy(obj))
        return items

    def _apply(self, api_version, kind, name, namespace, body) -> Dict[str, Any]:
        key = self._key(api_version, kind, name, namespace)
        obj = self.objects.get(key)
        if obj is None:
            raise ResourceNotFoundError(f"{kind} {namespace}/{name} not found")
        expected = body.get("metadata", {}).get("resourceVersion")
        if expected is not None and expected != obj["metadata"]["resourceVersion"]:
            raise ResourceConflictError(f"{kind} {namespace}/{name} was modified concurrently")
        merge_patch(obj, body)
        obj["metadata"]["resourceVersion"] = str(next(self._versions))
        return copy.deepcopy(obj)

    def patch(self, api_version, kind, name, namespace, body, field_manager=None) -> Dict[str, Any]:
        self._check("patch", kind)
        result = self._apply(api_version, kind, name, namespace, body)
        self.patches.append({
            "kind": kind, "name": name, "namespace": namespace,
            "body": copy.deepcopy(body), "field_manager": field_manager,
        })
        return result

    def patch_status(self, api_version, kind, name, namespace, body) -> Dict[str, Any]:
        self._check("patch_status", kind)
        result = self._apply(api_version, kind, name, namespace, body)
        self.status_patches.append({"kind": kind, "name": name, "namespace": namespace, "body": copy.deepcopy(body)})
        return result

    def create(self, body: Dict[str, Any], field_manager: Optional[str] = None) -> Dict[str, Any]:
        self._check("create", body["kind"])
        metadata = body["metadata"]
        key = self._key(body["apiVersion"], body["kind"], metadata["name"], metadata.get("namespace"))
        if key in self.objects:
            raise ResourceConflictError(f"{body['kind']} {metadata['name']} already exists")
        created = self.add(body)
        self.created.append(copy.deepcopy(body))
        return copy.deepcopy(created)

    def create_event(self, namespace: str, event) -> None:
        self._check("create_event", "Event")
        self.events.append(event)

    def watch(self, api_version, kind, namespace=None, timeout=None):
        for event_type, obj in self.watch_events:
            yield event_type, copy.deepcopy(obj)


def owner_ref(obj: Dict[str, Any], controller: Optional[bool] = True) -> Dict[str, Any]:
    ref = {
        "apiVersion": obj["apiVersion"],
        "kind": obj["kind"],
        "name": obj["metadata"]["name"],
        "uid": obj["metadata"]["uid"],
    }
    if controller is not None:
        ref["controller"] = controller
    return ref


def make_trait(
    name: str = "web-autoscaler",
    namespace: str = "default",
    uid: str = "trait-uid",
    triggers: Optional[List[Dict[str, Any]]] = None,
    workload: Optional[Dict[str, Any]] = None,
    target: Optional[Dict[str, str]] = None,
    owners: Optional[List[Dict[str, Any]]] = None,
    **spec: Any,
) -> Dict[str, Any]:
    trait = {
        "apiVersion": TRAIT_API_VERSION,
        "kind": TRAIT_KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": uid,
            "resourceVersion": "100",
            "ownerReferences": owners or [],
        },
        "spec": {"triggers": triggers if triggers is not None else [], **spec},
    }
    if workload is not None:
        trait["spec"]["workloadRef"] = {
            "apiVersion": workload["apiVersion"],
            "kind": workload["kind"],
            "name": workload["metadata"]["name"],
        }
    if target is not None:
        trait["spec"]["targetWorkload"] = target
    return trait


def make_object(
    api_version: str,
    kind: str,
    name: str,
    uid: str,
    namespace: Optional[str] = "default",
    owners: Optional[List[Dict[str, Any]]] = None,
    labels: Optional[Dict[str, str]] = None,
    created: str = "2024-01-01T00:00:00Z",
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "name": name,
        "uid": uid,
        "resourceVersion": "1",
        "creationTimestamp": created,
        "labels": labels or {},
        "ownerReferences": owners or [],
    }
    if namespace is not None:
        metadata["namespace"] = namespace
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata}


def make_definition(name: str, child_kinds: List[Dict[str, Any]]) -> Dict[str, Any]:
    definition = make_object(OAM_API_VERSION, "WorkloadDefinition", name, f"def-{name}", namespace=None)
    definition["spec"] = {"childResourceKinds": child_kinds}
    return definition


CPU_TRIGGER = {"name": "cpu", "type": "cpu", "metricTargetType": "Utilization", "threshold": 80}
CRON_TRIGGER = {"name": "office-hours", "type": "cron", "startAt": "09:00", "duration": "2", "replicas": "5"}


@pytest.fixture
def store():
    return MockResourceStore()


@pytest.fixture
def app_config():
    return make_object(OAM_API_VERSION, "ApplicationConfiguration", "shop", "app-uid")


@pytest.fixture
def workload(app_config):
    return make_object(
        OAM_API_VERSION, "ContainerizedWorkload", "web", "wl-uid",
        owners=[owner_ref(app_config)],
    )


@pytest.fixture
def cluster(store, app_config, workload):
    """Application context, workload with a Deployment and a Service, and a trait bound to it"""
    store.add(app_config)
    store.add(workload)
    store.add(make_definition(
        "containerizedworkloads.core.oam.dev",
        [
            {"apiVersion": "apps/v1", "kind": "Deployment", "selector": {"app": "web"}},
            {"apiVersion": "v1", "kind": "Service"},
        ],
    ))
    store.add(make_object(
        "apps/v1", "Deployment", "web", "deploy-uid",
        owners=[owner_ref(workload)], labels={"app": "web"},
    ))
    store.add(make_object("v1", "Service", "web", "svc-uid", owners=[owner_ref(workload)]))
    store.add(make_trait(
        workload=workload,
        triggers=[dict(CPU_TRIGGER), dict(CRON_TRIGGER)],
        owners=[owner_ref(app_config)],
    ))
    return store

#!/usr/bin/env python3
"""
Pydantic models for the autoscaler trait resource
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .references import ObjectRef, OwnerReference, TargetWorkloadRef

# Keys in a trigger condition map that stand in for each flat field
CONDITION_KEYS = {
    "metric_target_type": ("metricTargetType", "type"),
    "threshold": ("threshold", "value"),
    "start_at": ("startAt",),
    "duration": ("duration",),
    "replicas": ("replicas",),
    "timezone": ("timezone",),
    "days": ("days",),
}


class TriggerSpec(BaseModel):
    """
    A trigger exactly as the user wrote it.

    Fields may be given flat on the trigger or inside the ``condition`` string
    map; flat fields win. Values are kept with whatever type they were written
    in, the trigger validator decides what is usable.
    """
    name: Optional[Any] = Field(None, description="Trigger name, defaults to its position")
    type: Any = Field("", description="Trigger type: cpu, memory, storage, ephemeral-storage or cron")
    condition: Any = Field(default_factory=dict, description="Free-form trigger settings")

    # Resource-metric triggers
    metric_target_type: Optional[Any] = Field(None, alias="metricTargetType")
    threshold: Optional[Any] = Field(None)

    # Cron triggers
    start_at: Optional[Any] = Field(None, alias="startAt")
    duration: Optional[Any] = Field(None)
    replicas: Optional[Any] = Field(None)
    timezone: Optional[Any] = Field(None)
    days: Optional[Any] = Field(None)

    class Config:
        populate_by_name = True
        extra = "ignore"

    @property
    def type_name(self) -> str:
        return str(self.type or "").strip().lower()

    def value(self, field: str) -> Optional[Any]:
        """Return a field, falling back to the condition map; blank strings count as unset"""
        flat = getattr(self, field)
        if flat is not None and str(flat).strip() != "":
            return flat
        if not isinstance(self.condition, dict):
            return None
        for key in CONDITION_KEYS.get(field, ()):
            raw = self.condition.get(key)
            if raw is not None and str(raw).strip() != "":
                return raw
        return None


class TraitSpec(BaseModel):
    workload_ref: Optional[ObjectRef] = Field(None, alias="workloadRef")
    target_workload: Optional[TargetWorkloadRef] = Field(None, alias="targetWorkload")
    triggers: List[TriggerSpec] = Field(default_factory=list)
    min_replicas: Optional[int] = Field(None, alias="minReplicas", ge=0)
    max_replicas: Optional[int] = Field(None, alias="maxReplicas", ge=0)

    class Config:
        populate_by_name = True
        extra = "ignore"


class Condition(BaseModel):
    """A persisted status condition"""
    type: str
    status: str
    reason: str
    message: str = ""
    last_transition_time: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        alias="lastTransitionTime",
    )

    class Config:
        populate_by_name = True
        extra = "ignore"

    def same_state(self, other: "Condition") -> bool:
        return (self.type, self.status, self.reason, self.message) == (
            other.type, other.status, other.reason, other.message
        )

    def to_dict(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


class TraitStatus(BaseModel):
    conditions: List[Condition] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        extra = "ignore"

    def get_condition(self, condition_type: str) -> Optional[Condition]:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None


class ObjectMeta(BaseModel):
    name: str
    namespace: str = "default"
    uid: str = ""
    resource_version: Optional[str] = Field(None, alias="resourceVersion")
    owner_references: List[OwnerReference] = Field(default_factory=list, alias="ownerReferences")

    class Config:
        populate_by_name = True
        extra = "ignore"


class AutoscaleTrait(BaseModel):
    """Autoscaler trait as read from the cluster"""
    api_version: str = Field(..., alias="apiVersion")
    kind: str = Field(...)
    metadata: ObjectMeta
    spec: TraitSpec = Field(default_factory=TraitSpec)
    status: TraitStatus = Field(default_factory=TraitStatus)

    class Config:
        populate_by_name = True
        extra = "ignore"

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "AutoscaleTrait":
        return cls.model_validate(resource)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def uid(self) -> str:
        return self.metadata.uid

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def target_workload(self) -> Optional[TargetWorkloadRef]:
        target = self.spec.target_workload
        if target is not None and target.is_set:
            return target
        return None

    def owner_reference(self) -> OwnerReference:
        """Controller owner reference that binds adopted resources to this trait"""
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.uid,
            controller=True,
            block_owner_deletion=True,
        )

    def as_object(self) -> Dict[str, Any]:
        """Minimal object form, enough to serve as an event target"""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "uid": self.uid,
                "resourceVersion": self.metadata.resource_version,
            },
        }

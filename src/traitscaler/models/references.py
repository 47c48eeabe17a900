#!/usr/bin/env python3
"""
Pydantic models for object and owner references
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ObjectRef(BaseModel):
    """Stable (apiVersion, kind, name) pointer to a namespaced object"""
    api_version: str = Field("", alias="apiVersion", description="API group/version of the object")
    kind: str = Field("", description="Kind of the object")
    name: str = Field("", description="Name of the object")

    class Config:
        populate_by_name = True
        extra = "ignore"
        frozen = True

    @property
    def is_set(self) -> bool:
        return bool(self.api_version and self.kind and self.name)

    def to_dict(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)

    def __str__(self) -> str:
        return f"{self.api_version}/{self.kind}/{self.name}"

    @classmethod
    def of(cls, resource: Dict[str, Any]) -> "ObjectRef":
        """Build a reference to a resource given as a plain dict"""
        return cls(
            api_version=resource.get("apiVersion", ""),
            kind=resource.get("kind", ""),
            name=resource.get("metadata", {}).get("name", ""),
        )


class TargetWorkloadRef(ObjectRef):
    """The persisted scale target of a trait"""


class OwnerReference(BaseModel):
    """Owner reference as recorded in object metadata"""
    api_version: str = Field(..., alias="apiVersion")
    kind: str = Field(...)
    name: str = Field(...)
    uid: str = Field(...)
    controller: Optional[bool] = Field(None)
    block_owner_deletion: Optional[bool] = Field(None, alias="blockOwnerDeletion")

    class Config:
        populate_by_name = True
        extra = "ignore"

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

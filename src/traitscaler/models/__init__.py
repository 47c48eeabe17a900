"""
Models package for trait and reference data structures
"""

from .references import ObjectRef, OwnerReference, TargetWorkloadRef
from .trait import (
    AutoscaleTrait,
    Condition,
    ObjectMeta,
    TraitSpec,
    TraitStatus,
    TriggerSpec,
)

__all__ = [
    "ObjectRef",
    "OwnerReference",
    "TargetWorkloadRef",
    "AutoscaleTrait",
    "Condition",
    "ObjectMeta",
    "TraitSpec",
    "TraitStatus",
    "TriggerSpec",
]

"""
Core reconcile pipeline modules
"""

from .constants import Stage, TriggerType
from .errors import ReconcileError, ResourceStoreError, TraitscalerError

__all__ = [
    "Stage",
    "TriggerType",
    "ReconcileError",
    "ResourceStoreError",
    "TraitscalerError",
]

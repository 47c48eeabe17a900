#!/usr/bin/env python3
"""
Exception hierarchy for the trait controller
"""

from typing import Optional

from .constants import Stage


class TraitscalerError(Exception):
    """Base class for all controller errors"""


class ClientConfigError(TraitscalerError):
    """The cluster client could not be built; the controller cannot start"""


class ResourceStoreError(TraitscalerError):
    """A resource store call failed"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ResourceNotFoundError(ResourceStoreError):
    """The requested resource does not exist"""

    def __init__(self, message: str):
        super().__init__(message, status=404)


class ResourceConflictError(ResourceStoreError):
    """A write carried a stale resource version"""

    def __init__(self, message: str):
        super().__init__(message, status=409)


class ReconcileError(TraitscalerError):
    """
    A pipeline stage failed; the whole reconcile is retried after the fixed requeue.

    Attributes:
        stage: the last stage completed before the failure
        reason: event reason recorded for operators
    """

    reason = "ReconcileError"

    def __init__(self, message: str, stage: Stage = Stage.START, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        message = super().__str__()
        if self.cause is not None:
            return f"{message}: {self.cause}"
        return message


class ParentLocateError(ReconcileError):
    reason = "CannotLocateParent"


class WorkloadNotFoundError(ReconcileError):
    reason = "CannotLocateWorkload"


class ChildResourceError(ReconcileError):
    reason = "CannotFetchChildResources"


class OwnershipPatchError(ReconcileError):
    reason = "CannotAdoptResource"


class TargetPersistError(ReconcileError):
    reason = "CannotResolveTarget"


class DelegationError(ReconcileError):
    reason = "CannotSyncScaledObject"


class MalformedTraitError(ReconcileError):
    reason = "InvalidTrait"

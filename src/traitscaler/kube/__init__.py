"""
Kubernetes access layer
"""

from .client import build_api_client, build_dynamic_client
from .store import ResourceStore

__all__ = [
    "build_api_client",
    "build_dynamic_client",
    "ResourceStore",
]

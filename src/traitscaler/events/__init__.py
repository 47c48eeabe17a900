#!/usr/bin/env python3
"""
Events module: operator-visible events and status conditions
"""

from .base import Event, EventType, Severity
from .recorder import ConditionReporter

__all__ = [
    "Event",
    "EventType",
    "Severity",
    "ConditionReporter",
]

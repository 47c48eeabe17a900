"""
Traitscaler: reconciles autoscaler traits into KEDA scaled objects
"""

__version__ = "0.1.0"

# ========================
# src/utils/__init__.py
# ========================

"""
Utilities Package

Common utilities and helper functions for the merge engine.
"""

from .config import Config
from .performance_monitor import monitor_performance, PerformanceMonitor, SystemResourceMonitor
from .logging_setup import setup_logging
from .data_generator import DataGenerator
from .job_metadata import JobMetadataManager

__all__ = [
    'Config',
    'monitor_performance',
    'PerformanceMonitor',
    'SystemResourceMonitor',
    'setup_logging',
    'DataGenerator',
    'JobMetadataManager'
]

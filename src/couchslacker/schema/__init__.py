"""
Schema management package for couchslacker.

This package provides:
- Entity metadata resolution and caching
- Design document drift detection
- Schema reconciliation per operation (none, validate, create, drop)
"""

from .comparator import ComparisonStatus, DesignComparison, compare_designs
from .metadata import EntityMetadata, MetadataRegistry
from .operations import SchemaOperation
from .reconciler import ReconciliationResult, SchemaReconciler

__all__ = [
    "ComparisonStatus",
    "DesignComparison",
    "compare_designs",
    "EntityMetadata",
    "MetadataRegistry",
    "SchemaOperation",
    "ReconciliationResult",
    "SchemaReconciler",
]

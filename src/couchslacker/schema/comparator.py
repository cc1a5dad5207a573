"""
Design document drift detection for couchslacker.

Compares the design document implied by entity declarations with the one
observed in the database.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..design import DesignDocument


class ComparisonStatus(str, Enum):
    """Outcome of a design document comparison."""

    MATCH = "match"
    MISSING = "missing"
    MISMATCH = "mismatch"


@dataclass
class DesignComparison:
    """Result of comparing an expected design document with an observed one."""

    status: ComparisonStatus
    design_name: str
    differing_views: List[str] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        """Check if the observed design document matches."""
        return self.status == ComparisonStatus.MATCH

    @property
    def needs_write(self) -> bool:
        """Check if the expected design document has to be written."""
        return not self.is_match


def compare_designs(
    expected: DesignDocument,
    observed: Optional[DesignDocument],
) -> DesignComparison:
    """
    Compare view sets of two design documents.

    Views present on only one side, or differing in map or reduce source,
    are reported in ``differing_views``.
    """
    if observed is None:
        return DesignComparison(ComparisonStatus.MISSING, expected.name)

    expected_views = expected.view_map
    observed_views = observed.view_map

    differing = sorted(
        name
        for name in expected_views.keys() | observed_views.keys()
        if expected_views.get(name) != observed_views.get(name)
    )

    if differing:
        return DesignComparison(ComparisonStatus.MISMATCH, expected.name, differing)
    return DesignComparison(ComparisonStatus.MATCH, expected.name)

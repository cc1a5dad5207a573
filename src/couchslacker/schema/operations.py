"""
Schema operation policies for couchslacker.
"""

from enum import Enum


class SchemaOperation(str, Enum):
    """What the reconciler does with each declared database."""

    NONE = "none"            # Leave remote state alone
    VALIDATE = "validate"    # Fail if databases or design documents are missing or differ
    CREATE = "create"        # Create missing databases, write missing or differing designs
    DROP = "drop"            # Delete and recreate every database

    @property
    def is_mutating(self) -> bool:
        """Check if the operation may change remote state."""
        return self in (SchemaOperation.CREATE, SchemaOperation.DROP)

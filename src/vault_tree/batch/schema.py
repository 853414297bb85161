"""
Data classes and constants for the batch change request system.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


# =============================================================================
# Operation Types
# =============================================================================

class OperationType(str, Enum):
    """Supported batch operations."""
    CREATE_GROUP = "create_group"
    CREATE_ENTRY = "create_entry"
    CREATE_SECTION = "create_section"
    CREATE_ELEMENT = "create_element"
    DELETE = "delete"
    MOVE = "move"
    REPOSITION = "reposition"
    SET_PROPERTY = "set_property"


CREATE_OPERATIONS = frozenset({
    OperationType.CREATE_GROUP.value,
    OperationType.CREATE_ENTRY.value,
    OperationType.CREATE_SECTION.value,
    OperationType.CREATE_ELEMENT.value,
})


# =============================================================================
# Node kinds addressable by generic operations
# =============================================================================

# Ordered nodes: these can be moved and repositioned
ORDERED_KINDS = frozenset({"group", "entry", "section", "element"})

# Kinds accepted per generic operation
OPERATION_KINDS: Dict[str, frozenset] = {
    OperationType.DELETE.value: ORDERED_KINDS | {"user"},
    OperationType.MOVE.value: ORDERED_KINDS,
    OperationType.REPOSITION.value: ORDERED_KINDS,
    OperationType.SET_PROPERTY.value: ORDERED_KINDS | {"user"},
}

# Accepted spellings of element types
ELEMENT_TYPES: Dict[Any, int] = {
    "clear_text": 0,
    "cleartext": 0,
    "password": 1,
    0: 0,
    1: 1,
}

# Prefix marking a reference to a node created earlier in the same request
REF_PREFIX = "$"


# =============================================================================
# Field Requirements
# =============================================================================

# Required fields for each operation
REQUIRED_FIELDS: Dict[str, List[str]] = {
    OperationType.CREATE_GROUP.value: ["parent", "name"],
    OperationType.CREATE_ENTRY.value: ["group", "name"],
    OperationType.CREATE_SECTION.value: ["entry", "name"],
    OperationType.CREATE_ELEMENT.value: ["section", "name"],
    OperationType.DELETE.value: ["kind", "id"],
    OperationType.MOVE.value: ["kind", "id", "to"],
    OperationType.REPOSITION.value: ["kind", "id", "position"],
    OperationType.SET_PROPERTY.value: ["kind", "id", "field", "value"],
}

# Optional fields for each operation
OPTIONAL_FIELDS: Dict[str, List[str]] = {
    OperationType.CREATE_GROUP.value: ["icon", "position", "as"],
    OperationType.CREATE_ENTRY.value: ["tags", "icon", "position", "as"],
    OperationType.CREATE_SECTION.value: ["position", "as"],
    OperationType.CREATE_ELEMENT.value: ["value", "type", "position", "as"],
    OperationType.DELETE.value: [],
    OperationType.MOVE.value: ["position"],
    OperationType.REPOSITION.value: [],
    OperationType.SET_PROPERTY.value: [],
}

# Fields holding node ids (plain ints or $references)
ID_FIELDS = ("parent", "group", "entry", "section", "id", "to")


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class Change:
    """Single change operation."""
    operation: str
    params: Dict[str, Any]
    line_number: Optional[int] = None

    @property
    def alias(self) -> Optional[str]:
        """Name under which a created node can be referenced later."""
        return self.params.get("as")

    @property
    def kind(self) -> Optional[str]:
        return self.params.get("kind")


@dataclass
class ChangeRequest:
    """Parsed change request from YAML."""
    changes: List[Change]
    session_name: Optional[str] = None
    session_description: Optional[str] = None
    source_file: Optional[Path] = None


@dataclass
class ValidationError:
    """Validation error for a specific change."""
    index: int
    operation: str
    field: str
    message: str
    line_number: Optional[int] = None


@dataclass
class ValidationWarning:
    """Validation warning for a specific change."""
    index: int
    operation: str
    message: str
    line_number: Optional[int] = None


@dataclass
class ValidationResult:
    """Result of validating a change request."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)


@dataclass
class ChangeResult:
    """Result of executing a single change."""
    index: int
    operation: str
    success: bool
    message: str
    target: Optional[str] = None
    created_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Result of executing a batch change request.

    ``committed`` is true only when every change succeeded and the
    request was not a dry run.
    """
    total_count: int
    success_count: int
    failure_count: int
    changes: List[ChangeResult]
    duration_seconds: float
    committed: bool = False
    dry_run: bool = False
    aliases: Dict[str, int] = field(default_factory=dict)

    @property
    def skipped_count(self) -> int:
        return self.total_count - self.success_count - self.failure_count

"""
Validation for batch change requests.

Checks the shape of every change (known operation, required fields,
field types) and that each ``$name`` reference points at a node created
by an earlier change of the same request. Existence of plain ids is
left to execution, where it is checked inside the batch transaction.
"""
from __future__ import annotations

import logging
from typing import Any, List, Set, Tuple

from vault_tree.ordering import is_position

from .schema import (
    Change,
    ChangeRequest,
    ELEMENT_TYPES,
    ID_FIELDS,
    OPERATION_KINDS,
    OPTIONAL_FIELDS,
    OperationType,
    REF_PREFIX,
    REQUIRED_FIELDS,
    ValidationError,
    ValidationResult,
    ValidationWarning,
)

logger = logging.getLogger(__name__)


def validate_change_request(request: ChangeRequest) -> ValidationResult:
    """Validate a change request without touching the database."""
    errors: List[ValidationError] = []
    warnings: List[ValidationWarning] = []
    defined: Set[str] = set()
    used: Set[str] = set()

    for i, change in enumerate(request.changes):
        change_errors, change_warnings = _validate_change(change, i, defined, used)
        errors.extend(change_errors)
        warnings.extend(change_warnings)

    for name in sorted(defined - used):
        warnings.append(
            ValidationWarning(
                index=-1,
                operation="",
                message=f"Alias '{name}' is defined but never referenced",
            )
        )

    if errors:
        logger.debug("Change request has %d error(s)", len(errors))
    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def _error(change: Change, index: int, field: str, message: str) -> ValidationError:
    return ValidationError(
        index=index,
        operation=change.operation,
        field=field,
        message=message,
        line_number=change.line_number,
    )


def _validate_change(
    change: Change,
    index: int,
    defined: Set[str],
    used: Set[str],
) -> Tuple[List[ValidationError], List[ValidationWarning]]:
    errors: List[ValidationError] = []
    warnings: List[ValidationWarning] = []
    op = change.operation

    valid_operations = {o.value for o in OperationType}
    if op not in valid_operations:
        errors.append(_error(
            change, index, "operation",
            f"Unknown operation '{op}'. Valid: {', '.join(sorted(valid_operations))}",
        ))
        return errors, warnings

    required = REQUIRED_FIELDS[op]
    for field in required:
        if change.params.get(field) is None:
            errors.append(_error(change, index, field, f"Missing required field '{field}'"))

    known = set(required) | set(OPTIONAL_FIELDS[op])
    for field in sorted(set(change.params) - known):
        warnings.append(ValidationWarning(
            index=index,
            operation=op,
            message=f"Ignoring unknown field '{field}'",
            line_number=change.line_number,
        ))

    if op in OPERATION_KINDS and change.kind is not None:
        kinds = OPERATION_KINDS[op]
        if change.kind not in kinds:
            errors.append(_error(
                change, index, "kind",
                f"Invalid kind '{change.kind}' for {op}. Valid: {', '.join(sorted(kinds))}",
            ))

    for field in ID_FIELDS:
        if field in change.params and change.params[field] is not None:
            errors.extend(
                _validate_id(change, index, field, change.params[field], defined, used)
            )

    if op == OperationType.SET_PROPERTY.value and str(change.params.get("field")).endswith("_id"):
        value = change.params.get("value")
        if isinstance(value, str) and value.startswith(REF_PREFIX):
            errors.extend(_validate_id(change, index, "value", value, defined, used))

    position = change.params.get("position")
    if position is not None and (not is_position(position) or position < 0):
        errors.append(_error(
            change, index, "position", "Field 'position' must be a non-negative integer",
        ))

    if op == OperationType.CREATE_ELEMENT.value:
        element_type = change.params.get("type")
        if element_type is not None and (
            not isinstance(element_type, (str, int))
            or _element_type_key(element_type) not in ELEMENT_TYPES
        ):
            errors.append(_error(
                change, index, "type", f"Invalid element type '{element_type}'",
            ))

    if op == OperationType.CREATE_ENTRY.value:
        tags = change.params.get("tags")
        if tags is not None and not isinstance(tags, list):
            errors.append(_error(change, index, "tags", "Field 'tags' must be a list"))

    alias = change.alias
    if alias is not None:
        if not isinstance(alias, str) or not alias or alias.startswith(REF_PREFIX):
            errors.append(_error(
                change, index, "as", "Field 'as' must be a plain non-empty name",
            ))
        elif alias in defined:
            errors.append(_error(change, index, "as", f"Alias '{alias}' is already defined"))
        else:
            defined.add(alias)

    return errors, warnings


def _validate_id(
    change: Change,
    index: int,
    field: str,
    value: Any,
    defined: Set[str],
    used: Set[str],
) -> List[ValidationError]:
    if isinstance(value, int) and not isinstance(value, bool):
        return []
    if isinstance(value, str) and value.startswith(REF_PREFIX):
        name = value[len(REF_PREFIX):]
        if name not in defined:
            return [_error(
                change, index, field,
                f"Reference '{value}' does not name an earlier created node",
            )]
        used.add(name)
        return []
    return [_error(
        change, index, field,
        f"Field '{field}' must be an integer id or a '{REF_PREFIX}name' reference",
    )]


def _element_type_key(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value

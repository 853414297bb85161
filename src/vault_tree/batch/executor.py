"""
Executor for batch change requests.

Applies changes through a :class:`~vault_tree.editor.VaultEditor` inside
one ``editor.batch()``: either every change is committed or none is.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Tuple

from vault_tree.editor import VaultEditor
from vault_tree.exceptions import VaultError

from .parser import ParseError
from .schema import (
    BatchResult,
    Change,
    ChangeRequest,
    ChangeResult,
    ELEMENT_TYPES,
    OperationType,
    REF_PREFIX,
)
from .validator import validate_change_request

logger = logging.getLogger(__name__)

# kind -> (getter, attribute holding the parent id, method suffix)
_ORDERED: Dict[str, Tuple[str, str, str]] = {
    "group": ("get_group", "supergroup_id", "subgroup"),
    "entry": ("get_entry", "group_id", "entry"),
    "section": ("get_section", "entry_id", "section"),
    "element": ("get_element", "section_id", "element"),
}


class _Rollback(Exception):
    """Raised inside the batch to discard its transaction."""


def execute_change_request(
    editor: VaultEditor,
    request: ChangeRequest,
    dry_run: bool = False,
) -> BatchResult:
    """Execute a batch change request.

    Changes run in order; the first failure stops execution and rolls
    back everything the request did. With ``dry_run`` every change is
    executed and then rolled back, so references and positions are
    checked against the real tree.

    Raises:
        ParseError: If the request does not pass validation
    """
    validation = validate_change_request(request)
    if not validation.is_valid:
        details = "; ".join(
            f"[{e.index}] {e.operation}.{e.field}: {e.message}"
            for e in validation.errors
        )
        raise ParseError(f"Invalid change request: {details}")

    start_time = time.time()
    results: List[ChangeResult] = []
    aliases: Dict[str, int] = {}
    committed = False

    try:
        with editor.batch():
            for i, change in enumerate(request.changes):
                result = _execute_change(editor, change, i, aliases)
                results.append(result)
                if not result.success:
                    raise _Rollback
            if dry_run:
                raise _Rollback
        committed = True
    except _Rollback:
        logger.info(
            "Rolled back change request%s (%d change(s) attempted)",
            " (dry run)" if dry_run else "",
            len(results),
        )

    success_count = sum(1 for r in results if r.success)
    return BatchResult(
        total_count=len(request.changes),
        success_count=success_count,
        failure_count=len(results) - success_count,
        changes=results,
        duration_seconds=time.time() - start_time,
        committed=committed,
        dry_run=dry_run,
        aliases=dict(aliases),
    )


def _execute_change(
    editor: VaultEditor,
    change: Change,
    index: int,
    aliases: Dict[str, int],
) -> ChangeResult:
    """Execute a single change operation."""
    op = change.operation
    try:
        if op == OperationType.CREATE_GROUP.value:
            result = _exec_create_group(editor, change, index, aliases)
        elif op == OperationType.CREATE_ENTRY.value:
            result = _exec_create_entry(editor, change, index, aliases)
        elif op == OperationType.CREATE_SECTION.value:
            result = _exec_create_section(editor, change, index, aliases)
        elif op == OperationType.CREATE_ELEMENT.value:
            result = _exec_create_element(editor, change, index, aliases)
        elif op == OperationType.DELETE.value:
            result = _exec_delete(editor, change, index, aliases)
        elif op == OperationType.MOVE.value:
            result = _exec_move(editor, change, index, aliases)
        elif op == OperationType.REPOSITION.value:
            result = _exec_reposition(editor, change, index, aliases)
        elif op == OperationType.SET_PROPERTY.value:
            result = _exec_set_property(editor, change, index, aliases)
        else:
            return ChangeResult(
                index=index,
                operation=op,
                success=False,
                message=f"Unknown operation: {op}",
                error=f"Unknown operation: {op}",
            )
    except (VaultError, TypeError, ValueError) as e:
        logger.warning("Change #%d (%s) failed: %s", index + 1, op, e)
        return ChangeResult(
            index=index,
            operation=op,
            success=False,
            message=f"Error: {e}",
            error=str(e),
        )

    if result.created_id is not None and change.alias:
        aliases[change.alias] = result.created_id
    return result


def _resolve(value: Any, aliases: Dict[str, int]) -> Any:
    """Turn a ``$name`` reference into the id it names."""
    if isinstance(value, str) and value.startswith(REF_PREFIX):
        name = value[len(REF_PREFIX):]
        if name not in aliases:
            raise ParseError(f"Unresolved reference: {value}")
        return aliases[name]
    return value


def _created(change: Change, index: int, kind: str, node: Any) -> ChangeResult:
    return ChangeResult(
        index=index,
        operation=change.operation,
        success=True,
        message=f"Created {kind} {node.id} '{node.name}' at position {node.pos_index}",
        target=f"{kind}:{node.id}",
        created_id=node.id,
    )


def _exec_create_group(
    editor: VaultEditor, change: Change, index: int, aliases: Dict[str, int]
) -> ChangeResult:
    params = change.params
    group = editor.create_group(
        params["name"],
        _resolve(params["parent"], aliases),
        icon=params.get("icon"),
        pos_index=params.get("position"),
    )
    return _created(change, index, "group", group)


def _exec_create_entry(
    editor: VaultEditor, change: Change, index: int, aliases: Dict[str, int]
) -> ChangeResult:
    params = change.params
    entry = editor.create_entry(
        _resolve(params["group"], aliases),
        params["name"],
        tags=params.get("tags"),
        icon=params.get("icon"),
        pos_index=params.get("position"),
    )
    return _created(change, index, "entry", entry)


def _exec_create_section(
    editor: VaultEditor, change: Change, index: int, aliases: Dict[str, int]
) -> ChangeResult:
    params = change.params
    section = editor.create_section(
        _resolve(params["entry"], aliases),
        params["name"],
        pos_index=params.get("position"),
    )
    return _created(change, index, "section", section)


def _exec_create_element(
    editor: VaultEditor, change: Change, index: int, aliases: Dict[str, int]
) -> ChangeResult:
    params = change.params
    raw_type = params.get("type", 0)
    value = params.get("value")
    element_type = ELEMENT_TYPES[raw_type.lower() if isinstance(raw_type, str) else raw_type]
    element = editor.create_element(
        _resolve(params["section"], aliases),
        params["name"],
        "" if value is None else str(value),
        element_type,
        pos_index=params.get("position"),
    )
    return _created(change, index, "element", element)


def _exec_delete(
    editor: VaultEditor, change: Change, index: int, aliases: Dict[str, int]
) -> ChangeResult:
    kind = change.params["kind"]
    node_id = _resolve(change.params["id"], aliases)
    getattr(editor, f"delete_{kind}")(node_id)
    return ChangeResult(
        index=index,
        operation=change.operation,
        success=True,
        message=f"Deleted {kind} {node_id}",
        target=f"{kind}:{node_id}",
    )


def _current_parent(editor: VaultEditor, kind: str, node_id: int) -> int:
    getter, parent_attr, _ = _ORDERED[kind]
    return getattr(getattr(editor, getter)(node_id), parent_attr)


def _exec_move(
    editor: VaultEditor, change: Change, index: int, aliases: Dict[str, int]
) -> ChangeResult:
    kind = change.params["kind"]
    node_id = _resolve(change.params["id"], aliases)
    dest_id = _resolve(change.params["to"], aliases)
    position = change.params.get("position")

    source_id = _current_parent(editor, kind, node_id)
    suffix = _ORDERED[kind][2]
    getattr(editor, f"move_{suffix}")(source_id, node_id, dest_id, position)
    return ChangeResult(
        index=index,
        operation=change.operation,
        success=True,
        message=f"Moved {kind} {node_id} from {source_id} to {dest_id}",
        target=f"{kind}:{node_id}",
    )


def _exec_reposition(
    editor: VaultEditor, change: Change, index: int, aliases: Dict[str, int]
) -> ChangeResult:
    kind = change.params["kind"]
    node_id = _resolve(change.params["id"], aliases)
    position = change.params["position"]

    parent_id = _current_parent(editor, kind, node_id)
    suffix = _ORDERED[kind][2]
    getattr(editor, f"reposition_{suffix}")(parent_id, node_id, position)
    return ChangeResult(
        index=index,
        operation=change.operation,
        success=True,
        message=f"Repositioned {kind} {node_id} to {position}",
        target=f"{kind}:{node_id}",
    )


def _exec_set_property(
    editor: VaultEditor, change: Change, index: int, aliases: Dict[str, int]
) -> ChangeResult:
    kind = change.params["kind"]
    node_id = _resolve(change.params["id"], aliases)
    field = change.params["field"]
    value = change.params["value"]
    if str(field).endswith("_id"):
        value = _resolve(value, aliases)

    getattr(editor, f"set_{kind}_property")(node_id, field, value)
    return ChangeResult(
        index=index,
        operation=change.operation,
        success=True,
        message=f"Set {field} of {kind} {node_id}",
        target=f"{kind}:{node_id}",
    )

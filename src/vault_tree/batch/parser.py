"""
YAML parser for batch change requests.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from vault_tree.exceptions import VaultError

from .schema import Change, ChangeRequest


class ParseError(VaultError):
    """Error parsing a change request file."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        super().__init__(message)


def load_change_request(
    source: Union[str, Path, Dict[str, Any]],
) -> ChangeRequest:
    """Load a change request from a YAML file or dictionary.

    Args:
        source: Path to YAML file, YAML string, or parsed dictionary

    Returns:
        ChangeRequest object

    Raises:
        ParseError: If the file cannot be parsed or is invalid
        FileNotFoundError: If the file does not exist
    """
    source_path: Optional[Path] = None

    if isinstance(source, dict):
        data = source
    elif isinstance(source, Path) or (isinstance(source, str) and _is_file_path(source)):
        source_path = Path(source)
        if not source_path.exists():
            raise FileNotFoundError(f"File not found: {source_path}")
        data = _load_yaml_file(source_path)
    else:
        data = _load_yaml_string(source)

    return _parse_change_request(data, source_path)


def _is_file_path(s: str) -> bool:
    """Check if a string looks like a file path."""
    if "\n" in s:
        return False
    if "/" in s or "\\" in s:
        return True
    return s.endswith((".yaml", ".yml"))


def _check_root(data: Any, empty_message: str) -> Dict[str, Any]:
    if data is None:
        raise ParseError(empty_message)
    if not isinstance(data, dict):
        raise ParseError("YAML root must be a mapping (dictionary)")
    return data


def _yaml_error(e: yaml.YAMLError) -> ParseError:
    mark = getattr(e, "problem_mark", None)
    return ParseError(f"Invalid YAML: {e}", line=mark.line + 1 if mark else None)


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load YAML from a file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise _yaml_error(e) from e
    return _check_root(data, "Empty YAML file")


def _load_yaml_string(s: str) -> Dict[str, Any]:
    """Load YAML from a string."""
    try:
        data = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise _yaml_error(e) from e
    return _check_root(data, "Empty YAML content")


def _parse_change_request(
    data: Dict[str, Any],
    source_path: Optional[Path] = None,
) -> ChangeRequest:
    """Parse a dictionary into a ChangeRequest object."""
    session = data.get("session") or {}
    if not isinstance(session, dict):
        raise ParseError("Field 'session' must be a mapping")

    changes_data = data.get("changes")
    if changes_data is None:
        raise ParseError("Missing required field: 'changes'")
    if not isinstance(changes_data, list):
        raise ParseError("Field 'changes' must be a list")
    if len(changes_data) == 0:
        raise ParseError("Field 'changes' cannot be empty")

    return ChangeRequest(
        changes=_parse_changes(changes_data),
        session_name=session.get("name"),
        session_description=session.get("description"),
        source_file=source_path,
    )


def _parse_changes(changes_data: List[Any]) -> List[Change]:
    """Parse a list of change dictionaries into Change objects."""
    changes = []

    for i, change_data in enumerate(changes_data):
        if not isinstance(change_data, dict):
            raise ParseError(f"Change #{i + 1} must be a mapping (dictionary)")

        operation = change_data.get("operation")
        if not operation:
            raise ParseError(
                f"Change #{i + 1}: Missing required field 'operation'"
            )
        if not isinstance(operation, str):
            raise ParseError(
                f"Change #{i + 1}: Field 'operation' must be a string"
            )

        params = {k: v for k, v in change_data.items() if k != "operation"}
        changes.append(Change(operation=operation, params=params))

    return changes


def load_yaml_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Load raw YAML from a file (exposed for testing).

    Raises:
        ParseError: If the file cannot be parsed
    """
    return _load_yaml_file(Path(path))

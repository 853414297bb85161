"""
Batch change requests for vault-tree.

A change request is a YAML document listing tree operations that are
applied atomically through a :class:`~vault_tree.editor.VaultEditor`.

Example usage:
    from vault_tree import VaultEditor
    from vault_tree.batch import (
        load_change_request,
        validate_change_request,
        execute_change_request,
    )

    request = load_change_request("changes.yaml")

    validation = validate_change_request(request)
    if not validation.is_valid:
        for error in validation.errors:
            print(f"[{error.index}] {error.operation}: {error.message}")

    with VaultEditor("vault.db") as editor:
        result = execute_change_request(editor, request)
        print(f"Applied {result.success_count}/{result.total_count} changes")

Example request:
    changes:
      - operation: create_group
        parent: 1
        name: Banking
        as: bank
      - operation: create_entry
        group: $bank
        name: Main account
        tags: [finance]
        as: account
      - operation: create_section
        entry: $account
        name: Login
        as: login
      - operation: create_element
        section: $login
        name: password
        value: hunter2
        type: password
"""

from .schema import (
    # Enums and constants
    OperationType as OperationType,
    ELEMENT_TYPES as ELEMENT_TYPES,
    ORDERED_KINDS as ORDERED_KINDS,
    REQUIRED_FIELDS as REQUIRED_FIELDS,
    OPTIONAL_FIELDS as OPTIONAL_FIELDS,
    # Data classes
    Change as Change,
    ChangeRequest as ChangeRequest,
    ValidationError as ValidationError,
    ValidationWarning as ValidationWarning,
    ValidationResult as ValidationResult,
    ChangeResult as ChangeResult,
    BatchResult as BatchResult,
)

from .parser import (
    load_change_request as load_change_request,
    load_yaml_file as load_yaml_file,
    ParseError as ParseError,
)

from .validator import (
    validate_change_request as validate_change_request,
)

from .executor import (
    execute_change_request as execute_change_request,
)

__all__ = [
    # Enums and constants
    "OperationType",
    "ELEMENT_TYPES",
    "ORDERED_KINDS",
    "REQUIRED_FIELDS",
    "OPTIONAL_FIELDS",
    # Data classes
    "Change",
    "ChangeRequest",
    "ValidationError",
    "ValidationWarning",
    "ValidationResult",
    "ChangeResult",
    "BatchResult",
    # Functions
    "load_change_request",
    "load_yaml_file",
    "validate_change_request",
    "execute_change_request",
    # Exceptions
    "ParseError",
]

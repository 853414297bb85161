"""Custom exception hierarchy for vault-tree."""


class VaultError(Exception):
    """Base exception for all vault-tree errors."""


class EntityNotFoundError(VaultError):
    """Referenced parent, item or target doesn't exist."""


class ParameterError(VaultError):
    """Invalid caller input (missing target position, bad value)."""


class InvalidPositionError(ParameterError):
    """Target position outside the collection bounds."""


class InvalidPropertyError(ParameterError):
    """Property name outside the level's settable fields."""


class TreeCycleError(ParameterError):
    """Group move would make a group its own ancestor."""


class DuplicateEntityError(VaultError):
    """Entity with the same unique key already exists."""


class StorageError(VaultError):
    """Underlying persistence call failed; wraps the original cause."""


class DatabaseError(StorageError):
    """Schema version mismatch, connection failure."""


class ConfigError(VaultError):
    """Configuration file missing or malformed."""

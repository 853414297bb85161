__version__ = "0.1.0"

from .editor import VaultEditor as VaultEditor

from .config import (
    VaultConfig as VaultConfig,
    load_config as load_config,
    configure_logging as configure_logging,
)

from .exceptions import (
    VaultError as VaultError,
    EntityNotFoundError as EntityNotFoundError,
    ParameterError as ParameterError,
    InvalidPositionError as InvalidPositionError,
    InvalidPropertyError as InvalidPropertyError,
    TreeCycleError as TreeCycleError,
    DuplicateEntityError as DuplicateEntityError,
    StorageError as StorageError,
    DatabaseError as DatabaseError,
    ConfigError as ConfigError,
)

from .models import (
    ElementType as ElementType,
    UserRole as UserRole,
    NodeKind as NodeKind,
    GroupField as GroupField,
    EntryField as EntryField,
    SectionField as SectionField,
    ElementField as ElementField,
    UserField as UserField,
    Severity as Severity,
    UserModel as UserModel,
    GroupModel as GroupModel,
    EntryModel as EntryModel,
    SectionModel as SectionModel,
    ElementModel as ElementModel,
    EditRecord as EditRecord,
    ValidationResult as ValidationResult,
)

from .ordering import PositionedCollection as PositionedCollection

# Batch module - import as submodule: vault_tree.batch

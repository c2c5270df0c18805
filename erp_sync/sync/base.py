"""
Synchronizer contract and registry.

A synchronizer imports one ERP entity type into one CRM module. It declares
where its rows come from, how their columns map onto record attributes, which
attributes it sets itself and which parent records must already be imported.
The batch runner, upsert driver and identity resolver are shared by all
synchronizers.
"""

import logging
from abc import ABC
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from erp_sync.storage.db import SyncDatabase
from erp_sync.sync.conversions import DEFAULT_CONVERSIONS, Conversion
from erp_sync.sync.errors import SynchronizerConfigError
from erp_sync.sync.identity import IdentityResolver, is_empty_id
from erp_sync.sync.mapper import FieldMap, FieldMapEntry
from erp_sync.sync.sources import ConnectionFactory, QuerySource
from erp_sync.sync.upsert import RecordUpsertDriver

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """
    Everything a synchronizer needs from its surroundings.

    Attributes:
        database: CRM record store holding the identity mapping table
        external_system: Name of the ERP in the identity mapping table
        source: Factory for connections to the ERP database
        settings: Loaded configuration (e.g. 'currency_map')
    """

    database: SyncDatabase
    external_system: str
    source: Optional[ConnectionFactory] = None
    settings: dict[str, Any] = field(default_factory=dict)


class Synchronizer(ABC):
    """
    Base class of all entity synchronizers.

    Subclasses set the class attributes and override the hooks they need:

        @register_synchronizer
        class Companies(Synchronizer):
            NAME = "companies"
            MODULE = "MultiCompany"
            SOURCE_TABLE = "FIRMA"
            EXTERNAL_ID_COLUMN = "ID_FIRMY"
            QUERY = "SELECT * FROM FIRMA ORDER BY ID_FIRMY"
            FIELD_MAP = {"NAZWA": "company_name"}

    The field map is resolved when the synchronizer is built, so an unknown
    conversion raises SynchronizerConfigError before any row is read.
    """

    NAME: ClassVar[str] = ""
    LABEL: ClassVar[str] = ""
    MODULE: ClassVar[str] = ""
    SOURCE_TABLE: ClassVar[str] = ""
    EXTERNAL_ID_COLUMN: ClassVar[str] = ""
    QUERY: ClassVar[str] = ""
    FIELD_MAP: ClassVar[dict[str, FieldMapEntry]] = {}

    def __init__(self, context: SyncContext):
        for attribute in ("NAME", "MODULE", "SOURCE_TABLE", "EXTERNAL_ID_COLUMN"):
            if not getattr(self, attribute):
                raise SynchronizerConfigError(
                    f"{type(self).__name__} does not define {attribute}"
                )

        self.context = context
        self.resolver = IdentityResolver(context.database, context.external_system)
        self.driver = RecordUpsertDriver(context.database, context.external_system)

        registry = DEFAULT_CONVERSIONS.copy()
        registry.update(self.get_conversions())
        self.field_map = FieldMap(self.FIELD_MAP, registry)
        logger.debug(
            f"Synchronizer '{self.NAME}' ready: {len(self.field_map)} mapped fields"
        )

    @property
    def settings(self) -> dict[str, Any]:
        return self.context.settings

    # =========================================================================
    # Hooks
    # =========================================================================

    def get_conversions(self) -> Mapping[str, Conversion]:
        """Synchronizer-specific conversions, layered over the shared ones."""
        return {}

    def build_query(self) -> str:
        """
        Return the SQL query producing this synchronizer's rows.

        Raises:
            SynchronizerConfigError: If no query is defined
        """
        if not self.QUERY:
            raise SynchronizerConfigError(f"Synchronizer '{self.NAME}' has no query")
        return self.QUERY

    def fetch_rows(self) -> Iterable[dict[str, Any]]:
        """
        Return the stream of source rows.

        Raises:
            SynchronizerConfigError: If no ERP source is configured
        """
        if self.context.source is None:
            raise SynchronizerConfigError(
                f"Synchronizer '{self.NAME}' has no ERP source configured"
            )
        return QuerySource(self.context.source, self.build_query())

    def fixed_fields(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Attributes set on every imported record regardless of the field map."""
        return {}

    def required_parents(self, row: Mapping[str, Any]) -> dict[str, Optional[int]]:
        """
        Parent records the row depends on: attribute -> resolved parent id.

        A None id means the parent has not been imported yet; the row is then
        skipped.
        """
        return {}

    def describe_row(self, row: Mapping[str, Any]) -> str:
        """Short identification of a row for log messages."""
        return f"{self.EXTERNAL_ID_COLUMN}={row.get(self.EXTERNAL_ID_COLUMN)!r}"

    # =========================================================================
    # Import
    # =========================================================================

    def find_in_map_table(self, external_id: Any, source_table: str) -> Optional[int]:
        """Resolve an external id of any ERP table to an internal record id."""
        return self.resolver.resolve(source_table, external_id)

    def import_record(self, row: Mapping[str, Any]) -> int:
        """
        Import one row.

        Returns:
            Outcome code: 0 skipped, 1 updated, 2 created
        """
        external_id = row.get(self.EXTERNAL_ID_COLUMN)
        if is_empty_id(external_id):
            raise ValueError(f"Row has no {self.EXTERNAL_ID_COLUMN} value")

        outcome, _ = self.driver.upsert(
            row,
            self.field_map,
            self.find_in_map_table(external_id, self.SOURCE_TABLE),
            self.fixed_fields(row),
            module=self.MODULE,
            source_table=self.SOURCE_TABLE,
            external_id=external_id,
            required_parents=self.required_parents(row),
        )
        return outcome

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.NAME!r}, module={self.MODULE!r})"


# Registry: synchronizer name -> class, in registration order
_REGISTRY: dict[str, type[Synchronizer]] = {}


def register_synchronizer(cls: type[Synchronizer]) -> type[Synchronizer]:
    """
    Class decorator adding a synchronizer to the global registry.

    Raises:
        SynchronizerConfigError: If the name is empty or already registered
    """
    if not cls.NAME:
        raise SynchronizerConfigError(f"{cls.__name__} does not define NAME")
    existing = _REGISTRY.get(cls.NAME)
    if existing is not None and existing is not cls:
        raise SynchronizerConfigError(
            f"Synchronizer name '{cls.NAME}' is already registered by "
            f"{existing.__name__}"
        )
    _REGISTRY[cls.NAME] = cls
    return cls


def unregister_synchronizer(name: str) -> None:
    _REGISTRY.pop(name, None)


def get_synchronizer_class(name: str) -> type[Synchronizer]:
    """
    Look up a registered synchronizer by name.

    Raises:
        SynchronizerConfigError: If no synchronizer has that name
    """
    cls = _REGISTRY.get(name)
    if cls is None:
        available = ", ".join(_REGISTRY) or "(none)"
        raise SynchronizerConfigError(
            f"Unknown synchronizer '{name}'. Available: {available}"
        )
    return cls


def available_synchronizers() -> list[str]:
    """Names of all registered synchronizers, in registration order."""
    return list(_REGISTRY)

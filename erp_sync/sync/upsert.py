"""
Create-or-update of a single CRM record from a single ERP row.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from erp_sync.storage.db import SyncDatabase
from erp_sync.storage.record import Record
from erp_sync.sync.mapper import FieldMap
from erp_sync.sync.outcome import RowOutcome

logger = logging.getLogger(__name__)


class RecordUpsertDriver:
    """
    Loads or creates a record, fills it from a row and saves it.

    The record and, for new records, its identity mapping are written in one
    transaction by SyncDatabase.save_record(). Conversion and persistence
    errors propagate to the caller.

    Usage:
        driver = RecordUpsertDriver(database, "wapro")
        outcome, record_id = driver.upsert(
            row,
            field_map,
            identity=resolver.resolve("RACHUNEK_FIRMY", row["ID_RACHUNKU"]),
            fixed_fields={"wapro_id": row["ID_RACHUNKU"]},
            module="BankAccounts",
            source_table="RACHUNEK_FIRMY",
            external_id=row["ID_RACHUNKU"],
            required_parents={"multicompanyid": company_id},
        )
    """

    def __init__(self, database: SyncDatabase, external_system: str):
        self.database = database
        self.external_system = external_system

    def upsert(
        self,
        row: Mapping[str, Any],
        field_map: FieldMap,
        identity: Optional[int],
        fixed_fields: Optional[Mapping[str, Any]] = None,
        *,
        module: str,
        source_table: str,
        external_id: Any,
        required_parents: Optional[Mapping[str, Optional[int]]] = None,
    ) -> tuple[RowOutcome, Optional[int]]:
        """
        Create or update the record for one row.

        Args:
            row: Source row
            field_map: Resolved field map of the synchronizer
            identity: Internal id from the identity resolver, None if new
            fixed_fields: Attributes set regardless of the field map
            module: Target module of the record
            source_table: ERP table the row comes from
            external_id: ERP primary key of the row
            required_parents: Parent attribute -> resolved parent id. If any
                              parent is unresolved the row is skipped.

        Returns:
            (outcome, record id); the id is None when the row was skipped
        """
        required_parents = required_parents or {}
        missing = [name for name, value in required_parents.items() if value is None]
        if missing:
            logger.debug(
                f"Skipping {source_table}/{external_id}: unresolved parent "
                f"{', '.join(missing)}"
            )
            return RowOutcome.SKIPPED, None

        record: Record
        if identity is not None:
            record = self.database.load_record(module, identity)
        else:
            record = Record.new(module)
            record.register_mapping(self.external_system, source_table, external_id)

        if fixed_fields:
            record.set_many(dict(fixed_fields))
        record.set_many(dict(required_parents))

        field_map.apply(row, record)

        record_id = self.database.save_record(record)

        if identity is not None:
            logger.debug(
                f"Updated {module}#{record_id} from {source_table}/{external_id}"
            )
            return RowOutcome.UPDATED, record_id

        logger.debug(
            f"Created {module}#{record_id} from {source_table}/{external_id}"
        )
        return RowOutcome.CREATED, record_id

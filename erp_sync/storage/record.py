"""
CRM record model.

A Record is the internal entity an ERP row is imported into. The engine only
sets attributes on it and asks the store to save it.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class PendingMapping:
    """Identity mapping to insert together with a record on its first save."""

    external_system: str
    source_table: str
    external_id: str


@dataclass
class Record:
    """
    A record of a CRM module (e.g. "BankAccounts").

    Attributes:
        module: Module (record type) name
        id: Internal id, None until the record is first saved
        attributes: Field name -> value
        pending_mapping: Identity mapping registered for a new record; written
                         atomically with the record and cleared after save

    Usage:
        record = Record.new("BankAccounts")
        record.set("name", "Main account")
        record.register_mapping("wapro", "RACHUNEK_FIRMY", "17")
        database.save_record(record)
    """

    module: str
    id: Optional[int] = None
    attributes: dict[str, Any] = field(default_factory=dict)
    pending_mapping: Optional[PendingMapping] = None

    @classmethod
    def new(cls, module: str) -> "Record":
        """Create a clean, unsaved record."""
        return cls(module=module)

    @property
    def is_new(self) -> bool:
        return self.id is None

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self.attributes[name] = value

    def set_many(self, values: dict[str, Any]) -> None:
        self.attributes.update(values)

    def register_mapping(
        self, external_system: str, source_table: str, external_id: Any
    ) -> None:
        """
        Register the identity mapping to create when this record is saved.

        Raises:
            ValueError: If the record was already saved
        """
        if not self.is_new:
            raise ValueError(
                f"Record {self.module}#{self.id} is already saved; "
                "mappings are only registered for new records"
            )
        self.pending_mapping = PendingMapping(
            external_system=external_system,
            source_table=source_table,
            external_id=str(external_id),
        )

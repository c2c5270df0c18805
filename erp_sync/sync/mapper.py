"""
Declarative mapping of ERP row columns onto record attributes.

Field map format:

    {
        "NAZWA": "name",                                 # plain copy
        "SYM_WALUTY": ("currency_id", "convert_currency"), # through a conversion
    }
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from erp_sync.storage.record import Record
from erp_sync.sync.conversions import (
    DEFAULT_CONVERSIONS,
    Conversion,
    ConversionRegistry,
)
from erp_sync.sync.errors import SynchronizerConfigError

FieldMapEntry = Union[str, tuple[str, str]]


@dataclass(frozen=True)
class FieldRule:
    """One resolved field map entry."""

    source: str
    target: str
    conversion_name: Optional[str] = None
    conversion: Optional[Conversion] = None

    def convert(self, value: Any) -> Any:
        if self.conversion is None:
            return value
        return self.conversion(value)


class FieldMap:
    """
    Resolved, immutable field map shared by every row of a run.

    Conversion names are resolved when the map is built; an unknown name or a
    malformed entry raises SynchronizerConfigError.

    Usage:
        field_map = FieldMap({"NAZWA": "name"}, registry)
        field_map.apply(row, record)
    """

    def __init__(
        self,
        entries: Mapping[str, FieldMapEntry],
        registry: Optional[ConversionRegistry] = None,
    ):
        registry = registry if registry is not None else DEFAULT_CONVERSIONS
        self._rules = tuple(
            self._build_rule(source, entry, registry)
            for source, entry in entries.items()
        )

    @staticmethod
    def _build_rule(
        source: str, entry: FieldMapEntry, registry: ConversionRegistry
    ) -> FieldRule:
        if isinstance(entry, str):
            if not entry:
                raise SynchronizerConfigError(
                    f"Field map entry '{source}' has an empty target attribute"
                )
            return FieldRule(source=source, target=entry)

        if isinstance(entry, (tuple, list)) and len(entry) == 2:
            target, conversion_name = entry
            if not isinstance(target, str) or not target:
                raise SynchronizerConfigError(
                    f"Field map entry '{source}' has an invalid target attribute: "
                    f"{target!r}"
                )
            if not isinstance(conversion_name, str):
                raise SynchronizerConfigError(
                    f"Field map entry '{source}' has an invalid conversion name: "
                    f"{conversion_name!r}"
                )
            return FieldRule(
                source=source,
                target=target,
                conversion_name=conversion_name,
                conversion=registry.get(conversion_name),
            )

        raise SynchronizerConfigError(
            f"Field map entry '{source}' must be an attribute name or an "
            f"(attribute, conversion) pair, got {entry!r}"
        )

    def apply(self, row: Mapping[str, Any], record: Record) -> None:
        """
        Copy mapped columns from the row onto the record.

        Columns missing from the row leave the attribute untouched. Conversion
        errors propagate to the caller.
        """
        for rule in self._rules:
            if rule.source not in row:
                # A new record lacks the attribute; an update keeps the stored value
                continue
            record.set(rule.target, rule.convert(row[rule.source]))

    @property
    def targets(self) -> list[str]:
        return [rule.target for rule in self._rules]

    def __iter__(self) -> Iterator[FieldRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

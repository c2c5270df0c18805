"""
Named conversion functions for field maps.

A field map entry may name a conversion to apply to the raw ERP value before
it is written to the record. Conversions are plain callables taking the raw
value and returning the converted one; they are looked up by name when a
field map is built, so a typo fails before any row is processed.
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Optional

from erp_sync.sync.errors import SynchronizerConfigError

Conversion = Callable[[Any], Any]

# Values ERP flag columns use for "true"
TRUTHY_VALUES = {"1", "t", "true", "y", "yes", "tak"}

# Characters stripped from tax ids and account numbers
SEPARATORS = " ,.-"


class ConversionRegistry:
    """
    Registry of conversion functions keyed by stable names.

    Usage:
        registry = DEFAULT_CONVERSIONS.copy()
        registry.register("convert_currency", lookup_currency)

        @registry.conversion("yes_no")
        def yes_no(value):
            return "yes" if value else "no"
    """

    def __init__(self, conversions: Optional[Mapping[str, Conversion]] = None):
        self._conversions: dict[str, Conversion] = {}
        if conversions:
            self.update(conversions)

    def register(self, name: str, func: Conversion) -> None:
        """
        Register a conversion under a name, replacing any previous one.

        Raises:
            SynchronizerConfigError: If the name is empty or func is not callable
        """
        if not name:
            raise SynchronizerConfigError("Conversion name cannot be empty")
        if not callable(func):
            raise SynchronizerConfigError(f"Conversion '{name}' is not callable")
        self._conversions[name] = func

    def conversion(self, name: str) -> Callable[[Conversion], Conversion]:
        """Decorator form of register()."""

        def decorator(func: Conversion) -> Conversion:
            self.register(name, func)
            return func

        return decorator

    def update(self, conversions: Mapping[str, Conversion]) -> None:
        for name, func in conversions.items():
            self.register(name, func)

    def get(self, name: str) -> Conversion:
        """
        Look up a conversion by name.

        Raises:
            SynchronizerConfigError: If no conversion has that name
        """
        try:
            return self._conversions[name]
        except KeyError:
            available = ", ".join(sorted(self._conversions)) or "(none)"
            raise SynchronizerConfigError(
                f"Unknown conversion '{name}'. Available: {available}"
            ) from None

    def names(self) -> Iterable[str]:
        return sorted(self._conversions)

    def copy(self) -> "ConversionRegistry":
        return ConversionRegistry(self._conversions)

    def __contains__(self, name: object) -> bool:
        return name in self._conversions


DEFAULT_CONVERSIONS = ConversionRegistry()


@DEFAULT_CONVERSIONS.conversion("strip")
def strip(value: Any) -> Any:
    """Trim surrounding whitespace from strings; other values pass through."""
    if isinstance(value, str):
        return value.strip()
    return value


@DEFAULT_CONVERSIONS.conversion("upper")
def upper(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip().upper()


@DEFAULT_CONVERSIONS.conversion("to_bool")
def to_bool(value: Any) -> bool:
    """Interpret an ERP flag column (1/0, 'T'/'N', 'true'/'false', ...)."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in TRUTHY_VALUES


@DEFAULT_CONVERSIONS.conversion("to_int")
def to_int(value: Any) -> Optional[int]:
    """
    Convert to int; empty values become None.

    Raises:
        ValueError: If the value is not an integer
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return int(value)


@DEFAULT_CONVERSIONS.conversion("strip_separators")
def strip_separators(value: Any) -> Optional[str]:
    """Remove spaces, commas, dots and dashes (tax ids, account numbers)."""
    if value is None:
        return None
    text = str(value)
    for char in SEPARATORS:
        text = text.replace(char, "")
    return text


@DEFAULT_CONVERSIONS.conversion("currency_code")
def currency_code(value: Any) -> str:
    """
    Normalize an ISO 4217 currency code.

    Raises:
        ValueError: If the value is not a three-letter code
    """
    code = "" if value is None else str(value).strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(f"Invalid currency code: {value!r}")
    return code

"""
WAPRO ERP company bank accounts synchronizer.

Imports rows of RACHUNEK_FIRMY (joined with BANKI for the bank name and SWIFT
code) as BankAccounts records owned by an already imported company. Accounts
of companies that were not imported yet are skipped and picked up by a later
run.
"""

from collections.abc import Mapping
from typing import Any, Optional

from erp_sync.sync.base import Synchronizer, register_synchronizer
from erp_sync.sync.conversions import Conversion, currency_code, to_bool
from erp_sync.synchronizers.companies import Companies


@register_synchronizer
class BankAccounts(Synchronizer):
    """WAPRO ERP company bank accounts synchronizer."""

    NAME = "bank_accounts"
    LABEL = "Company bank accounts"
    MODULE = "BankAccounts"
    SOURCE_TABLE = "RACHUNEK_FIRMY"
    EXTERNAL_ID_COLUMN = "ID_RACHUNKU"
    QUERY = """
        SELECT RACHUNEK_FIRMY.*, BANKI.SWIFT AS SWIFT, BANKI.NAZWA AS bankName
        FROM RACHUNEK_FIRMY
        LEFT JOIN BANKI ON RACHUNEK_FIRMY.ID_BANKU = BANKI.ID_BANKU
        ORDER BY RACHUNEK_FIRMY.ID_RACHUNKU
    """
    FIELD_MAP = {
        "NAZWA": "name",
        "NUMER_RACHUNKU": "account_number",
        "bankName": "bank_name",
        "SWIFT": "swift",
        "SYM_WALUTY": ("currency_id", "convert_currency"),
    }

    def get_conversions(self) -> Mapping[str, Conversion]:
        return {"convert_currency": self.convert_currency}

    def convert_currency(self, value: Any) -> Optional[int]:
        """
        Map an ERP currency symbol to a CRM currency record id.

        Raises:
            ValueError: If the code is not listed in the currency_map setting
        """
        if value is None or not str(value).strip():
            return None
        code = currency_code(value)
        currency_map = self.settings.get("currency_map") or {}
        if code not in currency_map:
            raise ValueError(f"Currency not found: {code}")
        return currency_map[code]

    def fixed_fields(self, row: Mapping[str, Any]) -> dict[str, Any]:
        active = to_bool(row.get("AKTYWNY"))
        return {
            "bankaccount_status": "PLL_ACTIVE" if active else "PLL_INACTIVE",
            "wapro_id": row[self.EXTERNAL_ID_COLUMN],
        }

    def required_parents(self, row: Mapping[str, Any]) -> dict[str, Optional[int]]:
        return {
            "multicompanyid": self.find_in_map_table(
                row.get("ID_FIRMY"), Companies.SOURCE_TABLE
            ),
        }

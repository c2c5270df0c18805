"""
WAPRO ERP companies synchronizer.

Imports the ERP's own companies (table FIRMA) as MultiCompany records. Bank
accounts and other company-owned rows resolve their owner through the
mappings this synchronizer creates.
"""

from collections.abc import Mapping
from typing import Any

from erp_sync.sync.base import Synchronizer, register_synchronizer


@register_synchronizer
class Companies(Synchronizer):
    """WAPRO ERP companies synchronizer."""

    NAME = "companies"
    LABEL = "Companies"
    MODULE = "MultiCompany"
    SOURCE_TABLE = "FIRMA"
    EXTERNAL_ID_COLUMN = "ID_FIRMY"
    QUERY = "SELECT * FROM FIRMA ORDER BY ID_FIRMY"
    FIELD_MAP = {
        "NAZWA": "company_name",
        "NIP": ("vat_id", "strip_separators"),
    }

    def fixed_fields(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "mulcomp_status": "PLL_ACTIVE",
            "wapro_id": row[self.EXTERNAL_ID_COLUMN],
        }

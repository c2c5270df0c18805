"""
Identity resolution for imported ERP rows.

Answers "was this external id already imported, and as which record?" using
the persistent records_map table. The resolver only reads; mappings are
written by the store together with the record they point at.
"""

import logging
from typing import Any, Optional

from erp_sync.storage.db import SyncDatabase

logger = logging.getLogger(__name__)


def is_empty_id(external_id: Any) -> bool:
    """True for None and blank strings; such ids are never mapped."""
    return external_id is None or (
        isinstance(external_id, str) and not external_id.strip()
    )


class IdentityResolver:
    """
    Resolves (source table, external id) pairs to internal record ids.

    Attributes:
        database: Store holding the identity mapping table
        external_system: Name of the external system the ids come from

    Usage:
        resolver = IdentityResolver(database, "wapro")
        record_id = resolver.resolve("FIRMA", 12)
    """

    def __init__(self, database: SyncDatabase, external_system: str):
        self.database = database
        self.external_system = external_system

    def resolve(self, source_table: str, external_id: Any) -> Optional[int]:
        """
        Return the internal id mapped to an external id, or None.

        Empty external ids (None or blank strings) are never mapped.
        """
        if is_empty_id(external_id):
            return None

        internal_id = self.database.find_mapping(
            self.external_system, source_table, external_id
        )
        logger.debug(
            f"Resolved {self.external_system}/{source_table}/{external_id} "
            f"-> {internal_id}"
        )
        return internal_id

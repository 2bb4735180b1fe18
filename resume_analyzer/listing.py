"""
Reading analysis records back from the record store.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from .models import AnalysisRecord
from .records import RECORD_KEY_PREFIX, RecordStore, record_key

logger = logging.getLogger(__name__)


def decode_record(raw: str) -> AnalysisRecord:
    """Decode a stored JSON value. Raises pydantic's ValidationError."""
    return AnalysisRecord.model_validate_json(raw)


async def list_all(
    records: RecordStore, prefix: str = RECORD_KEY_PREFIX
) -> list[AnalysisRecord]:
    """
    Load every stored record, in the store's own order.

    Entries that do not decode are logged and skipped so one corrupt value
    cannot hide the rest of the listing.
    """
    items = await records.list(f"{prefix}*", return_values=True)

    hydrated = []
    for item in items:
        if item.value is None:
            continue
        try:
            hydrated.append(decode_record(item.value))
        except ValidationError as e:
            logger.warning(f"Skipping malformed record {item.key}: {e.error_count()} error(s)")

    logger.debug(f"Listed {len(hydrated)} of {len(items)} records")
    return hydrated


async def get_record(
    records: RecordStore, record_id: str, prefix: str = RECORD_KEY_PREFIX
) -> Optional[AnalysisRecord]:
    """Load one record by id; None if it is missing or malformed."""
    key = record_key(record_id, prefix)
    raw = await records.get(key)
    if raw is None:
        return None

    try:
        return decode_record(raw)
    except ValidationError as e:
        logger.warning(f"Stored record {key} is malformed: {e.error_count()} error(s)")
        return None

"""Row decoding, enrichment selection and document mapping.

Everything here is pure: no I/O, no session.  ``map_row`` returns
``None`` for a row without a usable primary key and the caller counts it
as a failure.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from dateutil.parser import parse as parse_date
from loguru import logger

from beneficiary_sync.lib.mapper.columns import EnrichmentColumn, RowColumn
from beneficiary_sync.lib.mapper.document import IndexDocument

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class EnrichmentRecord:
    """One health-ID record for a beneficiary."""

    ben_reg_id: int
    health_id: str | None = None
    health_id_number: str | None = None
    authentication_mode: str | None = None
    created_date: datetime | None = None


def to_int(value: Any) -> int | None:
    """Coerce a driver value to ``int``; ``None`` when not integral."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return int(value) if value == value.to_integral_value() else None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def to_str(value: Any) -> str | None:
    """Coerce a driver value to a stripped string; blank becomes ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_datetime(value: Any) -> datetime | None:
    """Coerce a date, datetime or date string to a ``datetime``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return parse_date(str(value))
    except (ValueError, OverflowError):
        return None


def to_epoch_millis(value: Any) -> int | None:
    """Coerce a timestamp or integer to epoch milliseconds."""
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=UTC)
        return int((aware - _EPOCH).total_seconds() * 1000)
    return to_int(value)


def _split_phones(value: Any, preferred: str | None) -> list[str] | None:
    text = to_str(value)
    if text is None:
        return None
    phones: list[str] = []
    for part in text.split(","):
        phone = part.strip()
        if phone and phone != preferred and phone not in phones:
            phones.append(phone)
    return phones or None


def row_key(row: Sequence[Any]) -> int | None:
    """Primary key of a raw beneficiary row."""
    return to_int(row[RowColumn.BEN_REG_ID])


def decode_enrichment_row(row: Sequence[Any]) -> EnrichmentRecord | None:
    """Decode one enrichment tuple; ``None`` when it has no usable key."""
    key = to_int(row[EnrichmentColumn.BEN_REG_ID])
    if key is None:
        return None
    return EnrichmentRecord(
        ben_reg_id=key,
        health_id=to_str(row[EnrichmentColumn.HEALTH_ID]),
        health_id_number=to_str(row[EnrichmentColumn.HEALTH_ID_NUMBER]),
        authentication_mode=to_str(row[EnrichmentColumn.AUTHENTICATION_MODE]),
        created_date=to_datetime(row[EnrichmentColumn.CREATED_DATE]),
    )


def _created_sort_key(record: EnrichmentRecord) -> float:
    if record.created_date is None:
        return float("-inf")
    created = record.created_date
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    return created.timestamp()


def pick_enrichment(key: int, candidates: Sequence[EnrichmentRecord]) -> EnrichmentRecord | None:
    """Choose the single enrichment record to merge for a key.

    The most recently created record wins; records without a creation
    date lose to dated ones, and ties keep the earliest candidate.  Every
    other candidate is logged as ignored.
    """
    if not candidates:
        return None
    chosen = max(candidates, key=_created_sort_key)
    ignored = len(candidates) - 1
    if ignored:
        logger.debug(f"benRegId={key}: using health-ID record created {chosen.created_date}, ignoring {ignored} older")
    return chosen


def group_enrichment(rows: Iterable[Sequence[Any]]) -> dict[int, EnrichmentRecord]:
    """Decode enrichment tuples and keep one record per key."""
    by_key: dict[int, list[EnrichmentRecord]] = defaultdict(list)
    for row in rows:
        record = decode_enrichment_row(row)
        if record is not None:
            by_key[record.ben_reg_id].append(record)

    picked: dict[int, EnrichmentRecord] = {}
    for key, candidates in by_key.items():
        record = pick_enrichment(key, candidates)
        if record is not None:
            picked[key] = record
    return picked


def map_row(row: Sequence[Any], enrichment: EnrichmentRecord | None = None) -> IndexDocument | None:
    """Map a raw beneficiary row plus optional enrichment to an index document.

    Args:
        row: Positional tuple in ``RowColumn`` order.
        enrichment: Health-ID record for the same key, if any.

    Returns:
        The document, or ``None`` if the row has no usable primary key.
    """
    ben_reg_id = row_key(row)
    if ben_reg_id is None:
        return None

    phone = to_str(row[RowColumn.PHONE_NUM])
    gender_name = to_str(row[RowColumn.GENDER_NAME])

    doc = IndexDocument(
        ben_id=str(ben_reg_id),
        ben_reg_id=ben_reg_id,
        beneficiary_id=to_str(row[RowColumn.BENEFICIARY_ID]),
        first_name=to_str(row[RowColumn.FIRST_NAME]),
        middle_name=to_str(row[RowColumn.MIDDLE_NAME]),
        last_name=to_str(row[RowColumn.LAST_NAME]),
        father_name=to_str(row[RowColumn.FATHER_NAME]),
        spouse_name=to_str(row[RowColumn.SPOUSE_NAME]),
        gender_id=to_int(row[RowColumn.GENDER_ID]),
        gender_name=gender_name,
        gender=gender_name,
        dob=to_datetime(row[RowColumn.DOB]),
        age=to_int(row[RowColumn.AGE]),
        marital_status_id=to_int(row[RowColumn.MARITAL_STATUS_ID]),
        marital_status_name=to_str(row[RowColumn.MARITAL_STATUS_NAME]),
        is_hiv_pos=to_str(row[RowColumn.IS_HIV_POS]),
        created_by=to_str(row[RowColumn.CREATED_BY]),
        created_date=to_datetime(row[RowColumn.CREATED_DATE]),
        last_mod_date=to_epoch_millis(row[RowColumn.LAST_MOD_DATE]),
        ben_account_id=to_int(row[RowColumn.BEN_ACCOUNT_ID]),
        phone_num=phone,
        alternate_phone_nums=_split_phones(row[RowColumn.ALTERNATE_PHONES], phone),
        family_id=to_str(row[RowColumn.FAMILY_ID]),
        state_id=to_int(row[RowColumn.STATE_ID]),
        state_name=to_str(row[RowColumn.STATE_NAME]),
        district_id=to_int(row[RowColumn.DISTRICT_ID]),
        district_name=to_str(row[RowColumn.DISTRICT_NAME]),
        block_id=to_int(row[RowColumn.BLOCK_ID]),
        block_name=to_str(row[RowColumn.BLOCK_NAME]),
        village_id=to_int(row[RowColumn.VILLAGE_ID]),
        village_name=to_str(row[RowColumn.VILLAGE_NAME]),
        pin_code=to_str(row[RowColumn.PIN_CODE]),
        service_point_id=to_int(row[RowColumn.SERVICE_POINT_ID]),
        service_point_name=to_str(row[RowColumn.SERVICE_POINT_NAME]),
        parking_place_id=to_int(row[RowColumn.PARKING_PLACE_ID]),
        perm_state_id=to_int(row[RowColumn.PERM_STATE_ID]),
        perm_state_name=to_str(row[RowColumn.PERM_STATE_NAME]),
        perm_district_id=to_int(row[RowColumn.PERM_DISTRICT_ID]),
        perm_district_name=to_str(row[RowColumn.PERM_DISTRICT_NAME]),
        perm_block_id=to_int(row[RowColumn.PERM_BLOCK_ID]),
        perm_block_name=to_str(row[RowColumn.PERM_BLOCK_NAME]),
        perm_village_id=to_int(row[RowColumn.PERM_VILLAGE_ID]),
        perm_village_name=to_str(row[RowColumn.PERM_VILLAGE_NAME]),
        govt_identity_no=to_str(row[RowColumn.GOVT_IDENTITY_NO]),
        aadhar_no=to_str(row[RowColumn.AADHAR_NO]),
    )

    if enrichment is not None:
        doc.health_id = enrichment.health_id
        doc.abha_id = enrichment.health_id_number
        doc.abha_created_date = enrichment.created_date.isoformat() if enrichment.created_date else None

    return doc

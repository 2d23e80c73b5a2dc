"""Fixed column layout of the extractor's row and enrichment queries.

Rows arrive as positional tuples.  ``RowColumn`` and ``EnrichmentColumn``
pin each column to its index; ``validate_columns`` checks a query's result
column names against the layout once at startup so a reordered view fails
fast instead of silently shifting every field.
"""

import enum
from collections.abc import Sequence

from beneficiary_sync.core.errors import ValidationError


class RowColumn(enum.IntEnum):
    """Index of each column in a beneficiary row."""

    BEN_REG_ID = 0
    BENEFICIARY_ID = 1
    FIRST_NAME = 2
    MIDDLE_NAME = 3
    LAST_NAME = 4
    GENDER_ID = 5
    GENDER_NAME = 6
    DOB = 7
    AGE = 8
    FATHER_NAME = 9
    SPOUSE_NAME = 10
    MARITAL_STATUS_ID = 11
    MARITAL_STATUS_NAME = 12
    IS_HIV_POS = 13
    CREATED_BY = 14
    CREATED_DATE = 15
    LAST_MOD_DATE = 16
    BEN_ACCOUNT_ID = 17
    PHONE_NUM = 18
    ALTERNATE_PHONES = 19
    FAMILY_ID = 20
    STATE_ID = 21
    STATE_NAME = 22
    DISTRICT_ID = 23
    DISTRICT_NAME = 24
    BLOCK_ID = 25
    BLOCK_NAME = 26
    VILLAGE_ID = 27
    VILLAGE_NAME = 28
    PIN_CODE = 29
    SERVICE_POINT_ID = 30
    SERVICE_POINT_NAME = 31
    PARKING_PLACE_ID = 32
    PERM_STATE_ID = 33
    PERM_STATE_NAME = 34
    PERM_DISTRICT_ID = 35
    PERM_DISTRICT_NAME = 36
    PERM_BLOCK_ID = 37
    PERM_BLOCK_NAME = 38
    PERM_VILLAGE_ID = 39
    PERM_VILLAGE_NAME = 40
    GOVT_IDENTITY_NO = 41
    AADHAR_NO = 42


class EnrichmentColumn(enum.IntEnum):
    """Index of each column in a health-ID enrichment row."""

    BEN_REG_ID = 0
    HEALTH_ID = 1
    HEALTH_ID_NUMBER = 2
    AUTHENTICATION_MODE = 3
    CREATED_DATE = 4


# Source column names in query order
ROW_COLUMNS: tuple[str, ...] = tuple(col.name.lower() for col in RowColumn)
ENRICHMENT_COLUMNS: tuple[str, ...] = tuple(col.name.lower() for col in EnrichmentColumn)


def validate_columns(actual: Sequence[str], expected: Sequence[str], *, relation: str) -> None:
    """Check that a result set's columns match the fixed layout.

    Args:
        actual: Column names reported by the executed query.
        expected: Column names of the layout, in order.
        relation: Relation name for the error message.

    Raises:
        ValidationError: If names or order differ.
    """
    actual_lower = [name.lower() for name in actual]
    if actual_lower == list(expected):
        return

    missing = [name for name in expected if name not in actual_lower]
    unexpected = [name for name in actual_lower if name not in expected]
    if missing or unexpected:
        msg = f"{relation}: column mismatch (missing={missing}, unexpected={unexpected})"
    else:
        msg = f"{relation}: columns present but out of order (got {actual_lower})"
    raise ValidationError(msg)

"""Beneficiary index settings, field mapping and lifecycle helpers."""

from elasticsearch import AsyncElasticsearch
from loguru import logger

_NAME_WITH_PREFIX = {
    "type": "text",
    "analyzer": "standard",
    "fields": {
        "keyword": {"type": "keyword", "ignore_above": 256},
        "prefix": {"type": "text", "analyzer": "standard", "index_prefixes": {"min_chars": 2, "max_chars": 5}},
    },
}

_NAME = {
    "type": "text",
    "analyzer": "standard",
    "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
}

_KEYWORD = {"type": "keyword"}
_INTEGER = {"type": "integer"}
_LONG = {"type": "long"}

# Bulk-load settings: slow refresh and async translog while syncing
INDEX_SETTINGS = {
    "number_of_shards": 3,
    "number_of_replicas": 1,
    "refresh_interval": "30s",
    "max_result_window": 10000,
    "queries": {"cache": {"enabled": True}},
    "translog": {"durability": "async", "sync_interval": "30s"},
}

INDEX_MAPPINGS = {
    "properties": {
        "benId": _KEYWORD,
        "benRegId": _LONG,
        "beneficiaryID": _KEYWORD,
        "firstName": _NAME_WITH_PREFIX,
        "middleName": _NAME,
        "lastName": _NAME_WITH_PREFIX,
        "fatherName": _NAME,
        "spouseName": _NAME,
        "genderID": _INTEGER,
        "genderName": _KEYWORD,
        "gender": _KEYWORD,
        "dOB": {"type": "date", "format": "strict_date_optional_time||epoch_millis"},
        "age": _INTEGER,
        "maritalStatusID": _INTEGER,
        "maritalStatusName": _KEYWORD,
        "isHIVPos": _KEYWORD,
        "createdBy": _KEYWORD,
        "createdDate": {"type": "date"},
        "lastModDate": _LONG,
        "benAccountID": _LONG,
        "phoneNum": {"type": "keyword", "fields": {"ngram": {"type": "text", "analyzer": "standard"}}},
        "alternatePhoneNums": _KEYWORD,
        "familyID": _KEYWORD,
        "stateID": _INTEGER,
        "stateName": _KEYWORD,
        "districtID": _INTEGER,
        "districtName": _KEYWORD,
        "blockID": _INTEGER,
        "blockName": _KEYWORD,
        "villageID": _INTEGER,
        "villageName": _KEYWORD,
        "pinCode": _KEYWORD,
        "servicePointID": _INTEGER,
        "servicePointName": _KEYWORD,
        "parkingPlaceID": _INTEGER,
        "permStateID": _INTEGER,
        "permStateName": _KEYWORD,
        "permDistrictID": _INTEGER,
        "permDistrictName": _KEYWORD,
        "permBlockID": _INTEGER,
        "permBlockName": _KEYWORD,
        "permVillageID": _INTEGER,
        "permVillageName": _KEYWORD,
        "govtIdentityNo": _KEYWORD,
        "aadharNo": _KEYWORD,
        "healthID": _KEYWORD,
        "abhaID": _KEYWORD,
        "abhaCreatedDate": _KEYWORD,
    }
}


async def create_index(client: AsyncElasticsearch, index: str, *, recreate: bool = False) -> bool:
    """Create the beneficiary index with its explicit mapping.

    Args:
        client: Elasticsearch client.
        index: Index name.
        recreate: Delete an existing index first.

    Returns:
        True if the index was created, False if it already existed.
    """
    exists = bool(await client.indices.exists(index=index))
    if exists and not recreate:
        logger.info(f"Index {index} already exists")
        return False
    if exists:
        logger.warning(f"Index {index} already exists, deleting...")
        await client.indices.delete(index=index)

    await client.indices.create(index=index, settings=INDEX_SETTINGS, mappings=INDEX_MAPPINGS)
    logger.info(f"Created index {index}")
    return True


async def optimize_for_search(client: AsyncElasticsearch, index: str) -> None:
    """Restore search-time settings after a bulk load and merge segments."""
    logger.info(f"Optimizing index {index} for search...")
    await client.indices.put_settings(
        index=index,
        settings={"refresh_interval": "1s", "translog": {"durability": "request"}},
    )
    await client.indices.forcemerge(index=index, max_num_segments=1)
    logger.info(f"Index {index} optimized")

"""Tests for the IndexDocument model."""

import pytest
from pydantic import ValidationError

from beneficiary_sync.lib.mapper import IndexDocument


class TestIndexDocument:
    """Tests for IndexDocument."""

    def test_populate_by_field_name_or_alias(self) -> None:
        by_name = IndexDocument(ben_id="10", first_name="Ravi")
        by_alias = IndexDocument(benId="10", firstName="Ravi")  # type: ignore[call-arg]
        assert by_name == by_alias
        assert by_name.document_id == "10"

    def test_empty_document_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            IndexDocument(ben_id="")

    def test_to_source_serializes_all_fields(self) -> None:
        source = IndexDocument(ben_id="10", alternate_phone_nums=["1", "2"]).to_source()
        assert source["benId"] == "10"
        assert source["alternatePhoneNums"] == ["1", "2"]
        assert source["healthID"] is None
        assert "permVillageName" in source

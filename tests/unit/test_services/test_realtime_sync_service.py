"""Tests for single-record index updates."""

import pytest

from beneficiary_sync.core.errors import ValidationError
from beneficiary_sync.lib.mapper import EnrichmentRecord
from beneficiary_sync.services.realtime_sync_service import RealtimeSyncService
from sync_fakes import FakeExtractor, FakeSink


class BrokenSink(FakeSink):
    """Sink whose single-record calls always fail."""

    async def index_one(self, document):  # type: ignore[no-untyped-def]
        msg = "index unavailable"
        raise ConnectionError(msg)

    async def delete_one(self, document_id: str) -> bool:
        msg = "index unavailable"
        raise ConnectionError(msg)


class TestSyncOne:
    """Tests for RealtimeSyncService.sync_one."""

    @pytest.mark.asyncio
    async def test_indexes_document_with_enrichment(self) -> None:
        enrichment = {4: EnrichmentRecord(ben_reg_id=4, health_id="asha@abdm", health_id_number="91-1234")}
        sink = FakeSink()
        service = RealtimeSyncService(FakeExtractor(10, enrichment=enrichment), sink)

        assert await service.sync_one("4") is True

        source = sink.documents["4"]
        assert source["benRegId"] == 4
        assert source["healthID"] == "asha@abdm"

    @pytest.mark.asyncio
    async def test_enrichment_failure_still_indexes(self) -> None:
        sink = FakeSink()
        service = RealtimeSyncService(FakeExtractor(10, enrichment_error=True), sink)

        assert await service.sync_one(2) is True
        assert "2" in sink.documents

    @pytest.mark.asyncio
    async def test_missing_row_returns_false(self) -> None:
        sink = FakeSink()
        service = RealtimeSyncService(FakeExtractor(10, missing_keys=[3]), sink)

        assert await service.sync_one(3) is False
        assert sink.documents == {}

    @pytest.mark.asyncio
    async def test_unmappable_row_returns_false(self) -> None:
        sink = FakeSink()
        service = RealtimeSyncService(FakeExtractor(10, unmappable_keys=[3]), sink)

        assert await service.sync_one(3) is False
        assert sink.documents == {}

    @pytest.mark.asyncio
    async def test_sink_error_returns_false(self) -> None:
        service = RealtimeSyncService(FakeExtractor(10), BrokenSink())

        assert await service.sync_one(1) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["abc", "", 0, -5, True, "1.5"])
    async def test_malformed_key_rejected(self, key: object) -> None:
        service = RealtimeSyncService(FakeExtractor(10), FakeSink())

        with pytest.raises(ValidationError):
            await service.sync_one(key)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_disabled_is_noop(self) -> None:
        extractor = FakeExtractor(10)
        service = RealtimeSyncService(extractor, FakeSink(), enabled=False)

        assert await service.sync_one(1) is False
        assert extractor.row_calls == []


class TestDeleteOne:
    """Tests for RealtimeSyncService.delete_one."""

    @pytest.mark.asyncio
    async def test_deletes_indexed_document(self) -> None:
        sink = FakeSink()
        service = RealtimeSyncService(FakeExtractor(10), sink)
        await service.sync_one(1)

        assert await service.delete_one(" 1 ") is True
        assert sink.deleted == ["1"]

    @pytest.mark.asyncio
    async def test_absent_document_returns_false(self) -> None:
        service = RealtimeSyncService(FakeExtractor(10), FakeSink())

        assert await service.delete_one("42") is False

    @pytest.mark.asyncio
    async def test_sink_error_returns_false(self) -> None:
        service = RealtimeSyncService(FakeExtractor(10), BrokenSink())

        assert await service.delete_one("1") is False

    @pytest.mark.asyncio
    async def test_empty_id_rejected(self) -> None:
        service = RealtimeSyncService(FakeExtractor(10), FakeSink())

        with pytest.raises(ValidationError):
            await service.delete_one("  ")

import pytest

from agentsmith.core.exceptions import LedgerWriteError
from agentsmith.models.database import get_db_context
from agentsmith.models.entities.audit import LedgerRecord
from agentsmith.models.schemas.ledger import LedgerEntry
from agentsmith.services.ledger import GENESIS_HASH, InMemoryLedger, SqlLedger, compute_hash


def _entry(entity_id="req-1", action="citizen_request_processed", **metadata):
    return LedgerEntry(
        entity_type="citizen_request",
        entity_id=entity_id,
        action=action,
        metadata=metadata or {"classification": "complaint"},
    )


class TestHashing:

    def test_reference_format(self):
        ref = compute_hash(GENESIS_HASH, 1, _entry())
        assert ref.startswith("0x")
        assert len(ref) == 66

    def test_metadata_key_order_does_not_matter(self):
        a = LedgerEntry(entity_type="t", entity_id="1", action="a", metadata={"x": 1, "y": 2})
        b = LedgerEntry(entity_type="t", entity_id="1", action="a", metadata={"y": 2, "x": 1})
        assert compute_hash(GENESIS_HASH, 1, a) == compute_hash(GENESIS_HASH, 1, b)

    def test_chain_position_changes_hash(self):
        assert compute_hash(GENESIS_HASH, 1, _entry()) != compute_hash(GENESIS_HASH, 2, _entry())


class TestInMemoryLedger:

    @pytest.mark.asyncio
    async def test_identical_entries_get_distinct_references(self, ledger):
        first = await ledger.append(_entry())
        second = await ledger.append(_entry())
        assert first != second
        assert await ledger.verify(first)
        assert await ledger.verify(second)

    @pytest.mark.asyncio
    async def test_unknown_reference(self, ledger):
        await ledger.append(_entry())
        assert await ledger.verify("0xdeadbeef") is False

    @pytest.mark.asyncio
    async def test_tampering_breaks_later_references(self):
        ledger = InMemoryLedger()
        first = await ledger.append(_entry(classification="complaint"))
        second = await ledger.append(_entry(entity_id="req-2"))

        ledger._records[0]["entry"] = _entry(classification="gratitude")

        assert await ledger.verify(first) is False
        assert await ledger.verify(second) is False


class TestSqlLedger:

    @pytest.mark.asyncio
    async def test_records_are_chained(self, session_factory):
        ledger = SqlLedger(session_factory)
        first = await ledger.append(_entry())
        second = await ledger.append(_entry(entity_id="req-2", action="agent_classification"))

        with get_db_context(session_factory) as db:
            rows = db.query(LedgerRecord).order_by(LedgerRecord.sequence).all()
            assert [r.sequence for r in rows] == [1, 2]
            assert rows[0].prev_hash == GENESIS_HASH
            assert rows[1].prev_hash == first
            assert rows[1].tx_hash == second

        assert ledger.count() == 2
        assert await ledger.verify(second) is True

    @pytest.mark.asyncio
    async def test_edited_row_is_detected(self, session_factory):
        ledger = SqlLedger(session_factory)
        await ledger.append(_entry(priority="high"))
        latest = await ledger.append(_entry(entity_id="req-2"))

        with get_db_context(session_factory) as db:
            row = db.query(LedgerRecord).filter(LedgerRecord.sequence == 1).one()
            row.details = {"priority": "low"}

        assert await ledger.verify(latest) is False

    @pytest.mark.asyncio
    async def test_write_failure_is_wrapped(self):
        def broken_factory():
            raise RuntimeError("database unavailable")

        with pytest.raises(LedgerWriteError):
            await SqlLedger(broken_factory).append(_entry())

"""
Simulated ledger: an append-only, hash-chained audit trail.

There is no real blockchain behind it. Each appended record gets a
transaction reference "0x<sha256>" computed over the previous hash and
the canonical JSON of the entry, so records can be verified later.
"""

import hashlib
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any

from sqlalchemy import func

from agentsmith.core.exceptions import LedgerWriteError
from agentsmith.models.database import get_db_context
from agentsmith.models.entities.audit import LedgerRecord
from agentsmith.models.schemas.ledger import LedgerEntry

logger = logging.getLogger(__name__)

GENESIS_HASH = "0x" + "0" * 64


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)


def compute_hash(prev_hash: str, sequence: int, entry: LedgerEntry) -> str:
    body = canonical_json({
        "sequence": sequence,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "action": entry.action,
        "metadata": entry.metadata,
    })
    return "0x" + hashlib.sha256(f"{prev_hash}{body}".encode("utf-8")).hexdigest()


class Ledger(ABC):
    """Append-only audit store."""

    @abstractmethod
    async def append(self, entry: LedgerEntry) -> str:
        """Append an entry; returns its transaction reference."""

    @abstractmethod
    async def verify(self, reference: str) -> bool:
        """True if the record exists and the chain up to it is intact."""


class InMemoryLedger(Ledger):

    def __init__(self):
        self._records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    async def append(self, entry: LedgerEntry) -> str:
        with self._lock:
            prev_hash = self._records[-1]["tx_hash"] if self._records else GENESIS_HASH
            sequence = len(self._records) + 1
            tx_hash = compute_hash(prev_hash, sequence, entry)
            self._records.append({
                "sequence": sequence,
                "tx_hash": tx_hash,
                "prev_hash": prev_hash,
                "entry": entry,
            })
        logger.debug(f"Ledger append #{sequence} {entry.action} -> {tx_hash}")
        return tx_hash

    async def verify(self, reference: str) -> bool:
        prev_hash = GENESIS_HASH
        for record in self._records:
            if compute_hash(prev_hash, record["sequence"], record["entry"]) != record["tx_hash"]:
                return False
            if record["tx_hash"] == reference:
                return True
            prev_hash = record["tx_hash"]
        return False

    @property
    def entries(self) -> List[LedgerEntry]:
        return [record["entry"] for record in self._records]


class SqlLedger(Ledger):
    """Ledger persisted in the ledger_records table."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory
        self._lock = threading.Lock()

    async def append(self, entry: LedgerEntry) -> str:
        try:
            with self._lock, get_db_context(self.session_factory) as db:
                last = db.query(LedgerRecord).order_by(LedgerRecord.sequence.desc()).first()
                prev_hash = last.tx_hash if last else GENESIS_HASH
                sequence = (last.sequence if last else 0) + 1
                tx_hash = compute_hash(prev_hash, sequence, entry)
                db.add(LedgerRecord(
                    sequence=sequence,
                    tx_hash=tx_hash,
                    prev_hash=prev_hash,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    action=entry.action,
                    details=entry.metadata,
                ))
        except Exception as e:
            raise LedgerWriteError(f"Ledger append failed: {e}") from e
        return tx_hash

    async def verify(self, reference: str) -> bool:
        with get_db_context(self.session_factory) as db:
            target = db.query(LedgerRecord).filter(LedgerRecord.tx_hash == reference).first()
            if target is None:
                return False
            records = (
                db.query(LedgerRecord)
                .filter(LedgerRecord.sequence <= target.sequence)
                .order_by(LedgerRecord.sequence)
                .all()
            )
            prev_hash = GENESIS_HASH
            for record in records:
                entry = LedgerEntry(
                    entity_type=record.entity_type,
                    entity_id=record.entity_id,
                    action=record.action,
                    metadata=record.details or {},
                )
                if record.prev_hash != prev_hash or compute_hash(prev_hash, record.sequence, entry) != record.tx_hash:
                    logger.warning(f"Ledger chain broken at sequence {record.sequence}")
                    return False
                prev_hash = record.tx_hash
            return True

    def count(self) -> int:
        with get_db_context(self.session_factory) as db:
            return db.query(func.count(LedgerRecord.id)).scalar() or 0

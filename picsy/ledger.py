"""
Transfer ledger.

Owns every TransferRecord the engine emits. The engine never reads it back;
it exists for feeds, profiles and the like-flow matrix.
"""

import dataclasses
import threading
import numpy as np
import pandas as pd
from typing import Dict, List, Optional

from .transfer import TransferRecord


class Ledger:
    """Append-only store of transfer records with sequential ids"""

    COLUMNS = ['record_id', 'buyer', 'seller', 'post_id', 'delta', 'alpha', 'timestamp']

    def __init__(self):
        self._records: List[TransferRecord] = []
        self._next_id = 1
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._records)

    def attach(self, controller):
        """Record every transfer the controller publishes."""
        controller.subscribe_transfers(lambda record, snapshot: self.record(record))

    def record(self, record: TransferRecord, post_id: Optional[int] = None) -> TransferRecord:
        """
        Store a record, assigning its id.

        Args:
            record: Record produced by a transfer
            post_id: Overrides the record's post id when given

        Returns:
            The stored record (with record_id set)
        """
        with self._lock:
            changes = {'record_id': self._next_id}
            if post_id is not None:
                changes['post_id'] = post_id
            stored = dataclasses.replace(record, **changes)
            self._records.append(stored)
            self._next_id += 1
        return stored

    def records(self) -> List[TransferRecord]:
        return list(self._records)

    def recent(self, limit: int = 100) -> List[TransferRecord]:
        """Newest first"""
        return list(reversed(self._records[-limit:])) if limit > 0 else []

    def sent_by(self, participant: int) -> List[TransferRecord]:
        return [r for r in self._records if r.buyer == participant]

    def received_by(self, participant: int) -> List[TransferRecord]:
        return [r for r in self._records if r.seller == participant]

    def for_post(self, post_id: int) -> List[TransferRecord]:
        return [r for r in self._records if r.post_id == post_id]

    def like_flow(self, n: int) -> np.ndarray:
        """N×N matrix of Σδ from buyer (row) to seller (column)"""
        flow = np.zeros((n, n))
        for r in self._records:
            if r.buyer < n and r.seller < n:
                flow[r.buyer, r.seller] += r.delta
        return flow

    def profile(self, participant: int, snapshot) -> Dict:
        """
        Per-participant summary.

        Args:
            participant: Participant index
            snapshot: EngineSnapshot to read c and budget from

        Returns:
            Dict with c, budget, pp, transfer counts and Σδ sent / received
        """
        sent = self.sent_by(participant)
        received = self.received_by(participant)
        in_range = participant < snapshot.size
        c = float(snapshot.c[participant]) if in_range else 0.0
        budget = float(snapshot.E[participant, participant]) if in_range else 0.0
        return {
            'participant': participant,
            'c': c,
            'budget': budget,
            'pp': budget * c,
            'sent_count': len(sent),
            'received_count': len(received),
            'sum_sent': float(sum(r.delta for r in sent)),
            'sum_received': float(sum(r.delta for r in received)),
        }

    def to_dataframe(self) -> pd.DataFrame:
        """All records as a DataFrame, oldest first"""
        if not self._records:
            return pd.DataFrame(columns=self.COLUMNS)
        return pd.DataFrame([dataclasses.asdict(r) for r in self._records])[self.COLUMNS]

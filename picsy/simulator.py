"""
Random like simulator.

Stands in for other users liking each other's posts. Every tick proposes
one transfer through the EngineController, the same entry point a UI
handler uses. A rejected transfer just skips the tick.
"""

import threading
import numpy as np
from typing import Callable, Dict, List, Optional

from .errors import TransferError
from .transfer import TransferRecord, max_affordable_delta

MIN_EFFECTIVE_DELTA = 1e-6


class RandomTransferDriver:
    """Proposes random (buyer, seller, δ) transfers"""

    def __init__(self, controller, delta_min: float = 0.02, delta_max: float = 0.08,
                 random_seed: Optional[int] = None,
                 post_picker: Optional[Callable[[int], Optional[int]]] = None):
        """
        Args:
            controller: EngineController to send transfers to
            delta_min: Lower bound for the proposed δ
            delta_max: Upper bound for the proposed δ
            random_seed: Seed for reproducible runs
            post_picker: Maps a seller to one of their post ids. A tick is
                skipped when it returns None (seller has no posts)
        """
        if delta_min > delta_max:
            raise ValueError(f"delta_min {delta_min} > delta_max {delta_max}")
        self.controller = controller
        self.delta_min = delta_min
        self.delta_max = delta_max
        self.post_picker = post_picker
        self.rng = np.random.default_rng(random_seed)

        self.ticks = 0
        self.skipped: Dict[str, int] = {'population': 0, 'no_post': 0,
                                        'budget': 0, 'rejected': 0, 'error': 0}
        self.last_error: Optional[Exception] = None

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _pick_pair(self, n: int):
        buyer = int(self.rng.integers(n))
        seller = int(self.rng.integers(n - 1))
        if seller >= buyer:
            seller += 1
        return buyer, seller

    def tick(self) -> Optional[TransferRecord]:
        """
        Propose one transfer.

        Returns:
            The TransferRecord, or None if the tick was skipped
        """
        self.ticks += 1
        snap = self.controller.snapshot()
        n = snap.size
        if n < 2:
            self.skipped['population'] += 1
            return None

        buyer, seller = self._pick_pair(n)
        post_id = None
        if self.post_picker is not None:
            post_id = self.post_picker(seller)
            if post_id is None:
                self.skipped['no_post'] += 1
                return None

        proposed = float(self.rng.uniform(self.delta_min, self.delta_max))
        delta = max(0.0, min(proposed, max_affordable_delta(snap.E, snap.c, buyer)))
        if delta < MIN_EFFECTIVE_DELTA:
            self.skipped['budget'] += 1
            return None

        try:
            return self.controller.transfer(buyer, seller, delta, post_id=post_id)
        except TransferError:
            # state moved under us between snapshot and command
            self.skipped['rejected'] += 1
            return None

    def run(self, ticks: int) -> List[TransferRecord]:
        """Run ticks synchronously and return the successful records."""
        records = []
        for _ in range(ticks):
            record = self.tick()
            if record is not None:
                records.append(record)
        return records

    # -- background scheduling ----------------------------------------------

    def _loop(self, interval: float):
        while not self._stop.wait(interval):
            try:
                self.tick()
            except Exception as exc:
                # one failed tick must not end the schedule
                self.skipped['error'] += 1
                self.last_error = exc

    def start(self, interval: float = 1.5):
        """Tick every `interval` seconds on a daemon thread."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, args=(interval,),
                                        name='picsy-random-likes', daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

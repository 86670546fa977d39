"""Counter Snapshot Provider"""

from models.counters import CounterSnapshot
from services.obligation_store import ObligationStore


class CounterSnapshotProvider:
    """Current usage counters for the aircraft of one user. Missing values read as 0."""

    def __init__(self, store: ObligationStore, user_id: str):
        self.store = store
        self.user_id = user_id

    async def get_counters(self, aircraft_id: str) -> CounterSnapshot:
        return await self.store.get_counters(self.user_id, aircraft_id)

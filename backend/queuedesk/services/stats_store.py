"""
Historical statistics storage for the wait-time estimator.

The in-memory store is what the estimator reads and writes. Loading it at
startup and persisting it after completions is left to the owner, usually
through `MongoHistoricalStatRepository`.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..database import Database
from ..models.estimation import HistoricalStat

logger = logging.getLogger(__name__)

_PATTERN_FIELDS = (
    "hourly_pattern",
    "day_of_week_pattern",
    "operator_pattern",
    "hourly_samples",
    "day_of_week_samples",
    "operator_samples",
)


class HistoricalStatStore:
    """Per-service learning state keyed by service id."""

    def __init__(self, stats: Optional[Iterable[HistoricalStat]] = None):
        self._stats: Dict[int, HistoricalStat] = {}
        if stats:
            self.load(stats)

    def get(self, service_id: int) -> Optional[HistoricalStat]:
        return self._stats.get(service_id)

    def put(self, stat: HistoricalStat) -> None:
        self._stats[stat.service_id] = stat

    def all(self) -> List[HistoricalStat]:
        return list(self._stats.values())

    def load(self, stats: Iterable[HistoricalStat]) -> int:
        """Replace entries with the given stats; returns how many were loaded."""
        count = 0
        for stat in stats:
            self.put(stat)
            count += 1
        return count

    def clear(self) -> None:
        self._stats.clear()

    def __contains__(self, service_id: object) -> bool:
        return service_id in self._stats

    def __len__(self) -> int:
        return len(self._stats)


class MongoHistoricalStatRepository:
    """Persists historical stats in the `historical_stats` collection."""

    COLLECTION = "historical_stats"

    @classmethod
    def to_document(cls, stat: HistoricalStat) -> dict:
        """MongoDB keys must be strings, so pattern maps are re-keyed."""
        doc = stat.model_dump()
        for field in _PATTERN_FIELDS:
            doc[field] = {str(key): value for key, value in doc[field].items()}
        return doc

    @classmethod
    def from_document(cls, doc: dict) -> HistoricalStat:
        doc = {key: value for key, value in doc.items() if key != "_id"}
        return HistoricalStat.model_validate(doc)

    @classmethod
    async def load_into(cls, store: HistoricalStatStore) -> int:
        """Load every persisted stat into the store."""
        collection = Database.get_collection(cls.COLLECTION)
        stats = []
        async for doc in collection.find({}):
            stats.append(cls.from_document(doc))
        loaded = store.load(stats)
        logger.info("Loaded historical stats for %d service(s)", loaded)
        return loaded

    @classmethod
    async def save(cls, stat: HistoricalStat) -> None:
        collection = Database.get_collection(cls.COLLECTION)
        await collection.replace_one(
            {"service_id": stat.service_id},
            cls.to_document(stat),
            upsert=True
        )

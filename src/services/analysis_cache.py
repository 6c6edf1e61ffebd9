from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from models import AnalysisRecord, VenueContext
from services.analysis_store import PersistentStore
from services.catalog import ALCOHOL_TAGS, BAR_TYPES, MENU_KEYWORDS
from services.enrichment import EnrichmentProvider
from services.write_behind import WriteBehindQueue

NEUTRAL_SCORE = 3.0
BAR_DRINKING_SCORE = 3.5
MENU_PICKS = 3


class MemoryTier:
    """Process-lifetime id -> record map. Unbounded unless ``max_entries`` is set (LRU)."""

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self.max_entries = max_entries
        self._data: "OrderedDict[str, AnalysisRecord]" = OrderedDict()
        self._lock = threading.Lock()

    def get_many(self, ids: Iterable[str]) -> Dict[str, AnalysisRecord]:
        hits: Dict[str, AnalysisRecord] = {}
        with self._lock:
            for i in ids:
                record = self._data.get(i)
                if record is not None:
                    self._data.move_to_end(i)
                    hits[i] = record
        return hits

    def put_many(self, records: Dict[str, AnalysisRecord]) -> None:
        with self._lock:
            for key, record in records.items():
                self._data[key] = record
                self._data.move_to_end(key)
            if self.max_entries is not None:
                while len(self._data) > self.max_entries:
                    self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, place_id: object) -> bool:
        with self._lock:
            return place_id in self._data


def extract_menu(text: str, vocabulary: Sequence[str] = MENU_KEYWORDS, limit: int = MENU_PICKS) -> List[str]:
    if not text:
        return []
    return [term for term in vocabulary if term in text][:limit]


def synthesize_record(context: VenueContext) -> AnalysisRecord:
    """Deterministic baseline analysis built only from provider data."""
    types = set(context.types)
    is_bar = bool(types & BAR_TYPES)
    has_alcohol = is_bar or bool(types & ALCOHOL_TAGS)
    menu = extract_menu(" ".join(context.reviews) or context.review_text)

    tags: list[str] = []
    if has_alcohol:
        tags.append("お酒あり")
    if is_bar:
        tags.append("2軒目向き")

    return AnalysisRecord(
        place_id=context.id,
        insight=context.editorial_summary or "",
        score=float(context.rating) if context.rating else NEUTRAL_SCORE,
        drinking_score=BAR_DRINKING_SCORE if is_bar else 0.0,
        recommended_menu=", ".join(menu),
        has_alcohol=has_alcohol,
        tags=tuple(tags),
        alcohol_status="お酒あり" if has_alcohol else "不明",
        hero_feature="基本情報のみ表示",
        source="synthesized",
    )


class AnalysisCache:
    """Read-through cache: memory tier, then persistent store, then enrichment, then synthesis."""

    def __init__(
        self,
        store: Optional[PersistentStore] = None,
        *,
        enricher: Optional[EnrichmentProvider] = None,
        writer: Optional[WriteBehindQueue] = None,
        memory: Optional[MemoryTier] = None,
    ) -> None:
        self.store = store
        self.enricher = enricher
        self.memory = memory if memory is not None else MemoryTier()
        if writer is None and store is not None:
            writer = WriteBehindQueue(store)
        self.writer = writer

    def _read_store(self, ids: List[str]) -> Dict[str, AnalysisRecord]:
        if not ids or self.store is None:
            return {}
        try:
            return self.store.bulk_get(ids)
        except Exception as exc:
            logger.error("Persistent store read failed, treating {} ids as misses: {}", len(ids), exc)
            return {}

    def _enrich(self, contexts: List[VenueContext]) -> Dict[str, AnalysisRecord]:
        if not contexts or self.enricher is None:
            return {}
        try:
            return self.enricher.analyze(contexts)
        except Exception as exc:
            logger.error("Enrichment failed for {} venues, falling back to synthesis: {}", len(contexts), exc)
            return {}

    def _write_through(self, records: Dict[str, AnalysisRecord], by_id: Dict[str, VenueContext]) -> None:
        if self.writer is None:
            return
        for place_id, record in records.items():
            self.writer.submit(record, by_id.get(place_id))

    def resolve(self, contexts: Sequence[VenueContext]) -> Dict[str, AnalysisRecord]:
        """Return a record for every context id; never partial."""
        by_id: Dict[str, VenueContext] = {}
        for c in contexts:
            by_id.setdefault(c.id, c)
        ids = list(by_id)

        results = self.memory.get_many(ids)
        memory_hits = len(results)

        misses = [i for i in ids if i not in results]
        stored = {k: v for k, v in self._read_store(misses).items() if k in by_id}
        if stored:
            self.memory.put_many(stored)
            results.update(stored)

        misses = [i for i in ids if i not in results]
        enriched = {k: v for k, v in self._enrich([by_id[i] for i in misses]).items() if k in by_id}
        if enriched:
            self.memory.put_many(enriched)
            results.update(enriched)

        misses = [i for i in ids if i not in results]
        synthesized = {i: synthesize_record(by_id[i]) for i in misses}
        if synthesized:
            self.memory.put_many(synthesized)
            results.update(synthesized)

        self._write_through({**enriched, **synthesized}, by_id)
        logger.info(
            "Analysis cache: {} memory hits, {} store hits, {} enriched, {} synthesized",
            memory_hits,
            len(stored),
            len(enriched),
            len(synthesized),
        )
        return results

    def clear(self) -> None:
        self.memory.clear()

    def close(self, timeout: Optional[float] = None) -> bool:
        if self.writer is None:
            return True
        return self.writer.close(timeout)

"""Durable analysis storage.

The production store is a Notion database, one page per venue keyed by the
``PlaceID`` rich-text property. Its pages double as a work queue for Notion AI,
which fills in the catchphrase and popular-menu columns later on.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, Protocol

import requests
from loguru import logger

from config import Configuration
from models import AnalysisRecord, VenueContext
from services.classifier import normalize_category

BULK_CHUNK = 100
MAX_REVIEWS = 5
MAX_REVIEW_CHARS = 1000

AI_INSTRUCTION = (
    "🤖 Notion AIへの指示:\n"
    "1. 上記の店名・ジャンル・概要を元に、大学生が明日行きたくなる15文字以内のキャッチコピーを作成してください（数字禁止）。\n"
    "2. レビューから人気メニューを3つ抽出し、箇条書きで列挙してください。"
)


class StoreError(RuntimeError):
    pass


class PersistentStore(Protocol):
    def bulk_get(self, ids: Iterable[str]) -> Dict[str, AnalysisRecord]:
        ...

    def exists(self, place_id: str) -> bool:
        ...

    def put(self, place_id: str, record: AnalysisRecord, context: Optional[VenueContext] = None) -> None:
        ...


def normalize_database_id(raw: Optional[str]) -> str:
    """Accept a 32-char hex id or a dashed UUID, with or without quotes."""
    cleaned = (raw or "").strip().strip("\"'")
    if "-" in cleaned or len(cleaned) != 32:
        return cleaned
    return re.sub(
        r"^([0-9a-f]{8})([0-9a-f]{4})([0-9a-f]{4})([0-9a-f]{4})([0-9a-f]{12})$",
        r"\1-\2-\3-\4-\5",
        cleaned,
        flags=re.IGNORECASE,
    )


def _plain_text(prop: Optional[Dict[str, Any]]) -> str:
    if not prop:
        return ""
    for key in ("rich_text", "title"):
        items = prop.get(key)
        if isinstance(items, list) and items:
            return str(items[0].get("plain_text") or "")
    return ""


def _rich(text: str) -> List[Dict[str, Any]]:
    return [{"text": {"content": text}}] if text else []


def page_to_record(page: Dict[str, Any]) -> Optional[AnalysisRecord]:
    props = page.get("properties")
    if not isinstance(props, dict):
        return None
    place_id = _plain_text(props.get("PlaceID"))
    if not place_id:
        return None

    catchphrase = _plain_text(props.get("Catchphrase")) or _plain_text(props.get("AIComment"))
    score = (props.get("Score") or {}).get("number") or 0
    drinking = (props.get("DrinkingScore") or {}).get("number") or 0
    category = ((props.get("Category") or {}).get("select") or {}).get("name")
    tags = [t.get("name") for t in (props.get("AITags") or {}).get("multi_select") or [] if t.get("name")]

    return AnalysisRecord(
        place_id=place_id,
        insight=catchphrase,
        score=min(float(score), 5.0) if score > 0 else 3.0,
        drinking_score=float(drinking),
        recommended_menu=_plain_text(props.get("PopularMenu")),
        tags=tuple(tags),
        category=normalize_category(category),
        hero_feature="Notion情報あり" if catchphrase else "分析中...",
        source="store",
    )


def record_to_page(
    database_id: str, place_id: str, record: AnalysisRecord, context: Optional[VenueContext]
) -> Dict[str, Any]:
    name = (context.name if context else "") or "Unknown"
    address = context.address if context else ""
    summary = (context.editorial_summary if context else None) or ""
    category = record.category or (context.category if context else None)
    rating = context.rating if context and context.rating is not None else record.score

    properties: Dict[str, Any] = {
        "Name": {"title": [{"text": {"content": name}}]},
        "PlaceID": {"rich_text": [{"text": {"content": place_id}}]},
        "Location": {"rich_text": _rich(address)},
        "Category": {"select": {"name": category} if category else None},
        "Score": {"number": rating or 0},
        "PopularMenu": {"rich_text": [{"text": {"content": record.recommended_menu}}]},
        "Summary": {"rich_text": _rich(summary)},
    }
    if record.insight:
        properties["AIComment"] = {"rich_text": _rich(record.insight)}

    children: List[Dict[str, Any]] = [
        {
            "object": "block",
            "type": "heading_3",
            "heading_3": {"rich_text": _rich("Google Maps Data (Source)")},
        },
        {
            "object": "block",
            "type": "paragraph",
            "paragraph": {
                "rich_text": [
                    {"text": {"content": f"Rating: {rating if rating else 'N/A'}\n"}},
                    {"text": {"content": f"Summary: {summary or 'No summary provided.'}\n"}},
                ]
            },
        },
    ]

    reviews = list(context.reviews if context else ())[:MAX_REVIEWS]
    if reviews:
        children.append(
            {"object": "block", "type": "heading_3", "heading_3": {"rich_text": _rich("Recent Reviews")}}
        )
        for idx, review in enumerate(reviews, start=1):
            text = review if len(review) <= MAX_REVIEW_CHARS else review[:MAX_REVIEW_CHARS] + "..."
            children.append(
                {
                    "object": "block",
                    "type": "paragraph",
                    "paragraph": {"rich_text": _rich(f"Review {idx}: {text}")},
                }
            )

    children.append(
        {
            "object": "block",
            "type": "callout",
            "callout": {"rich_text": _rich(AI_INSTRUCTION), "icon": {"emoji": "✨"}},
        }
    )

    return {"parent": {"database_id": database_id}, "properties": properties, "children": children}


class NotionStore:
    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.notion_base_url.rstrip("/")
        self.database_id = normalize_database_id(cfg.notion_database_id)
        self.session = session or requests.Session()
        logger.info("Notion store using database {}", self.database_id or "<unset>")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.cfg.notion_api_key}",
            "Notion-Version": self.cfg.notion_version,
            "Content-Type": "application/json",
        }

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.database_id:
            raise StoreError("NOTION_DATABASE_ID is not configured")
        try:
            resp = self.session.post(
                f"{self.base}{path}", json=body, headers=self._headers(), timeout=self.cfg.notion_timeout
            )
        except requests.RequestException as exc:
            raise StoreError(f"request error: {exc}")
        if not resp.ok:
            if resp.status_code in (400, 404):
                logger.error("Notion returned {}; check the database id", resp.status_code)
            raise StoreError(f"notion {resp.status_code}: {resp.text[:300]}")
        try:
            return resp.json()
        except ValueError:
            raise StoreError("invalid json response")

    def _query(self, filter_: Dict[str, Any]) -> List[Dict[str, Any]]:
        pages: list[Dict[str, Any]] = []
        body: Dict[str, Any] = {"filter": filter_, "page_size": 100}
        while True:
            payload = self._post(f"/databases/{self.database_id}/query", body)
            pages.extend(payload.get("results") or [])
            cursor = payload.get("next_cursor")
            if not payload.get("has_more") or not cursor:
                return pages
            body = {**body, "start_cursor": cursor}

    @staticmethod
    def _place_filter(place_id: str) -> Dict[str, Any]:
        return {"property": "PlaceID", "rich_text": {"equals": place_id}}

    def bulk_get(self, ids: Iterable[str]) -> Dict[str, AnalysisRecord]:
        wanted = list(dict.fromkeys(i for i in ids if i))
        found: Dict[str, AnalysisRecord] = {}
        for start in range(0, len(wanted), BULK_CHUNK):
            chunk = wanted[start : start + BULK_CHUNK]
            pages = self._query({"or": [self._place_filter(i) for i in chunk]})
            for page in pages:
                record = page_to_record(page)
                if record and record.place_id in chunk:
                    found.setdefault(record.place_id, record)
        logger.info("Notion bulk read: {} of {} ids found", len(found), len(wanted))
        return found

    def exists(self, place_id: str) -> bool:
        return bool(self._query(self._place_filter(place_id)))

    def put(self, place_id: str, record: AnalysisRecord, context: Optional[VenueContext] = None) -> None:
        self._post("/pages", record_to_page(self.database_id, place_id, record, context))
        logger.info("Notion saved {}", context.name if context else place_id)

from unittest.mock import MagicMock

import pytest

from config import Configuration
from models import AnalysisRecord
from services.analysis_store import (
    NotionStore,
    StoreError,
    normalize_database_id,
    page_to_record,
    record_to_page,
)
from helpers import make_context

DB_ID = "0123456789abcdef0123456789abcdef"


def _page(place_id, catchphrase="", score=4.0, category="izakaya"):
    props = {
        "PlaceID": {"rich_text": [{"plain_text": place_id}]},
        "Score": {"number": score},
        "DrinkingScore": {"number": 4.5},
        "Category": {"select": {"name": category}},
        "PopularMenu": {"rich_text": [{"plain_text": "唐揚げ, 焼き鳥"}]},
        "AITags": {"multi_select": [{"name": "2軒目向き"}]},
    }
    if catchphrase:
        props["Catchphrase"] = {"rich_text": [{"plain_text": catchphrase}]}
    return {"properties": props}


def _response(payload, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


def _store(session):
    cfg = Configuration(notion_api_key="secret", notion_database_id=DB_ID)
    return NotionStore(cfg, session=session)


def test_normalize_database_id():
    assert normalize_database_id(DB_ID) == "01234567-89ab-cdef-0123-456789abcdef"
    assert normalize_database_id(f'"{DB_ID}"') == "01234567-89ab-cdef-0123-456789abcdef"
    assert normalize_database_id("01234567-89ab-cdef-0123-456789abcdef") == "01234567-89ab-cdef-0123-456789abcdef"
    assert normalize_database_id(None) == ""


def test_page_to_record():
    record = page_to_record(_page("p1", catchphrase="路地裏の名酒場", category="izakaya"))
    assert record.place_id == "p1"
    assert record.insight == "路地裏の名酒場"
    assert record.score == 4.0
    assert record.drinking_score == 4.5
    assert record.recommended_menu == "唐揚げ, 焼き鳥"
    assert record.tags == ("2軒目向き",)
    assert record.category == "izakaya"
    assert record.hero_feature == "Notion情報あり"
    assert record.source == "store"


def test_page_to_record_defaults():
    record = page_to_record(_page("p2", score=0))
    assert record.score == 3.0
    assert record.hero_feature == "分析中..."
    assert page_to_record({"properties": {}}) is None


def test_record_to_page_includes_context_and_instruction():
    ctx = make_context("p1", name="みなと", address="堺市", rating=4.1, reviews=("x" * 1200, "良い"))
    page = record_to_page("db", "p1", AnalysisRecord(place_id="p1", recommended_menu="餃子"), ctx)

    props = page["properties"]
    assert page["parent"] == {"database_id": "db"}
    assert props["Name"]["title"][0]["text"]["content"] == "みなと"
    assert props["PlaceID"]["rich_text"][0]["text"]["content"] == "p1"
    assert props["Score"]["number"] == 4.1
    assert props["Category"]["select"] == {"name": "restaurant"}
    assert "AIComment" not in props
    review_blocks = [b for b in page["children"] if b["type"] == "paragraph"][1:]
    assert review_blocks[0]["paragraph"]["rich_text"][0]["text"]["content"].endswith("...")
    assert page["children"][-1]["type"] == "callout"


def test_bulk_get_filters_and_paginates():
    session = MagicMock()
    session.post.side_effect = [
        _response({"results": [_page("a"), _page("zzz")], "has_more": True, "next_cursor": "c1"}),
        _response({"results": [_page("b")], "has_more": False}),
    ]
    found = _store(session).bulk_get(["a", "b", "c"])

    assert set(found) == {"a", "b"}
    first_body = session.post.call_args_list[0].kwargs["json"]
    assert len(first_body["filter"]["or"]) == 3
    assert session.post.call_args_list[1].kwargs["json"]["start_cursor"] == "c1"


def test_bulk_get_chunks_large_requests():
    session = MagicMock()
    session.post.return_value = _response({"results": [], "has_more": False})
    _store(session).bulk_get([f"id{i}" for i in range(250)])
    assert session.post.call_count == 3


def test_failures_raise_store_error():
    session = MagicMock()
    session.post.return_value = _response({"message": "not found"}, status=404)
    with pytest.raises(StoreError):
        _store(session).exists("a")

    unconfigured = NotionStore(Configuration(notion_api_key="secret", notion_database_id=None), session=MagicMock())
    with pytest.raises(StoreError):
        unconfigured.bulk_get(["a"])


def test_put_posts_page():
    session = MagicMock()
    session.post.return_value = _response({"id": "page"})
    _store(session).put("p1", AnalysisRecord(place_id="p1"), make_context("p1"))
    url = session.post.call_args.args[0]
    assert url.endswith("/pages")


def test_page_category_labels_map_back_to_slugs():
    assert page_to_record(_page("p1", category="居酒屋")).category == "izakaya"
    assert page_to_record(_page("p2", category="謎ジャンル")).category is None

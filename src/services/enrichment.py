from __future__ import annotations

import json
import time
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence

from google import genai
from google.genai import types as genai_types
from loguru import logger

from config import Configuration
from models import AnalysisRecord, VenueContext
from services.classifier import category_label
from utils import extract_json_block


class EnrichmentError(RuntimeError):
    pass


class EnrichmentProvider(Protocol):
    def analyze(self, contexts: Sequence[VenueContext]) -> Dict[str, AnalysisRecord]:
        ...


PROMPT_HEADER = """
あなたは信頼できるグルメ・コンシェルジュです。
リストの各店舗について、2軒目や飲み会に向くか、普段の食事に向くかを評価してください。
必ず日本語で、JSON配列のみを返してください。

評価基準:
- drinking_score (1.0-5.0): お酒の充実度、飲みの雰囲気、2軒目としての使いやすさ。チェーン店は3.0以下。
  レビューに「地元の名店」「隠れ家」などの記述があれば4.5以上。
- score (1.0-5.0): 料理、接客を含む総合的な魅力。個人店を優遇し、大手チェーンは3.0-3.5程度。

各要素のキー:
id, alcohol_status, alcohol_note, hero_feature, ai_insight (100文字程度), best_for, mood,
score, drinking_score, recommendedMenu, hasAlcohol, tags (例: ["2軒目向き", "個室"])

分析対象店舗:
"""


def build_prompt(contexts: Sequence[VenueContext]) -> str:
    stores = [
        {
            "id": c.id,
            "name": c.name,
            "category": category_label(c.category),
            "closingTime": c.remaining_open_minutes,
            "distance": c.formatted_distance,
            "types": list(c.types),
            "reviews": f"【基本情報】\n{c.reservation_info}\n\n【レビュー】\n{c.review_text or 'レビューなし'}",
        }
        for c in contexts
    ]
    return PROMPT_HEADER + json.dumps(stores, ensure_ascii=False, indent=2)


def parse_analysis_response(text: str, wanted_ids: Iterable[str]) -> Dict[str, AnalysisRecord]:
    """Turn the model's JSON text into records; unknown ids and malformed items are ignored."""
    try:
        data: Any = json.loads(extract_json_block(text or ""))
    except ValueError as exc:
        raise EnrichmentError(f"unparseable enrichment response: {exc}")

    if isinstance(data, dict):
        data = data.get("results", [])
    if not isinstance(data, list):
        raise EnrichmentError("enrichment response is not a list")

    wanted = set(wanted_ids)
    out: Dict[str, AnalysisRecord] = {}
    for item in data:
        if not isinstance(item, dict):
            continue
        place_id = str(item.get("id") or "")
        if place_id not in wanted:
            continue
        out[place_id] = AnalysisRecord.from_payload(place_id, item, source="enrichment")
    return out


def _is_quota_error(exc: Exception) -> bool:
    text = str(exc)
    return "429" in text or "Quota" in text or "RESOURCE_EXHAUSTED" in text


class GeminiEnricher:
    def __init__(self, cfg: Configuration, client: Optional[Any] = None) -> None:
        self.cfg = cfg
        self.model_id = cfg.gemini_model_id
        self._client = client

    def _ensure_client(self) -> Any:
        if self._client is None:
            if not self.cfg.gemini_api_key:
                raise EnrichmentError("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self.cfg.gemini_api_key)
        return self._client

    def _generate(self, prompt: str) -> str:
        response = self._ensure_client().models.generate_content(
            model=self.model_id,
            contents=prompt,
            config=genai_types.GenerateContentConfig(response_mime_type="application/json"),
        )
        return response.text or ""

    def analyze(self, contexts: Sequence[VenueContext]) -> Dict[str, AnalysisRecord]:
        if not contexts:
            return {}
        prompt = build_prompt(contexts)
        logger.info("Sending batch request to {} for {} stores", self.model_id, len(contexts))
        try:
            try:
                raw = self._generate(prompt)
            except Exception as exc:
                if not _is_quota_error(exc):
                    raise
                logger.warning("Gemini quota exceeded, retrying in {}s", self.cfg.gemini_retry_delay_sec)
                time.sleep(self.cfg.gemini_retry_delay_sec)
                raw = self._generate(prompt)
        except EnrichmentError:
            raise
        except Exception as exc:
            raise EnrichmentError(f"gemini call failed: {exc}")
        return parse_analysis_response(raw, (c.id for c in contexts))

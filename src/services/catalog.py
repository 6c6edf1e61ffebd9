"""Enumerable vocabularies used by classification, ranking and synthesis.

Kept as plain data so that brands, categories and menu terms can be extended
without touching the algorithms that consume them.
"""

from __future__ import annotations

from typing import Dict, Tuple

# Brands whose closing times are reliably enforced; they get the shorter closing buffer.
KNOWN_CHAIN_BRANDS: Tuple[str, ...] = (
    "すき家", "吉野家", "松屋", "なか卯",
    "マクドナルド", "モスバーガー", "バーガーキング", "ケンタッキー",
    "スターバックス", "ドトール", "タリーズ", "コメダ珈琲",
    "サイゼリヤ", "ガスト", "デニーズ", "ジョイフル", "ロイヤルホスト",
    "スシロー", "くら寿司", "はま寿司", "かっぱ寿司",
    "ココイチ", "天下一品", "丸亀製麺", "日高屋", "餃子の王将",
    "牛角", "鳥貴族",
)

# Meal-focused chains capped in the ranked output.
FAST_FOOD_CHAIN_PATTERNS: Tuple[str, ...] = (
    "すき家", "マクドナルド", "マック", "吉野家", "松屋", "やよい軒", "大戸屋",
    "サイゼリヤ", "ガスト", "ココス", "モスバーガー", "ケンタッキー",
    "ミスタードーナツ", "CoCo壱番屋", "かつや", "てんや", "はま寿司", "スシロー",
    "くら寿司", "かっぱ寿司", "丸亀製麺", "日高屋", "餃子の王将", "大阪王将",
    "スターバックス", "ドトール", "タリーズ",
)

# Name substring -> category. Checked in order, before any type tag.
NAME_CATEGORY_OVERRIDES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("すき家", "吉野家", "松屋"), "gyudon"),
    (("マクドナルド", "モスバーガー", "バーガーキング"), "hamburger"),
    (("スターバックス", "ドトール", "タリーズ", "コメダ珈琲"), "cafe"),
    (("サイゼリヤ", "ガスト"), "family-restaurant"),
    (("スシロー", "くら寿司", "はま寿司"), "conveyor-belt-sushi"),
    (("ラーメン", "拉麺"), "ramen"),
)

# Detailed type tags in precedence order; the first hit wins.
TYPE_CATEGORY_PRECEDENCE: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("yakiniku_restaurant", "barbecue_restaurant"), "yakiniku"),
    (("ramen_restaurant",), "ramen"),
    (("sushi_restaurant",), "sushi"),
    (("italian_restaurant",), "italian"),
    (("french_restaurant",), "french"),
    (("chinese_restaurant",), "chinese"),
    (("korean_restaurant",), "korean"),
    (("indian_restaurant",), "indian"),
    (("thai_restaurant",), "thai"),
    (("japanese_restaurant",), "japanese"),
    (("izakaya_restaurant",), "izakaya"),
    (("fast_food_restaurant",), "fast-food"),
    (("hamburger_restaurant",), "hamburger"),
    (("steak_house",), "steak"),
    (("seafood_restaurant",), "seafood"),
)

GENERIC_TYPE_FALLBACKS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("bar", "night_club", "pub"), "izakaya-bar"),
    (("cafe", "coffee_shop"), "cafe"),
    (("bakery",), "bakery"),
    (("meal_takeaway",), "takeaway"),
    (("restaurant",), "restaurant"),
)

DEFAULT_CATEGORY = "restaurant"

CATEGORY_LABELS: Dict[str, str] = {
    "gyudon": "牛丼/定食",
    "hamburger": "ハンバーガー",
    "cafe": "カフェ",
    "family-restaurant": "ファミレス",
    "conveyor-belt-sushi": "回転寿司",
    "ramen": "ラーメン",
    "yakiniku": "焼肉",
    "sushi": "寿司",
    "italian": "イタリアン",
    "french": "フレンチ",
    "chinese": "中華",
    "korean": "韓国料理",
    "indian": "インド料理",
    "thai": "タイ料理",
    "japanese": "和食",
    "izakaya": "居酒屋",
    "fast-food": "ファストフード",
    "steak": "ステーキ",
    "seafood": "海鮮",
    "izakaya-bar": "居酒屋・バー",
    "bakery": "ベーカリー",
    "takeaway": "テイクアウト",
    "restaurant": "レストラン",
}

# Dropped in drinking mode.
NON_ALCOHOL_CATEGORIES = frozenset(
    {"cafe", "bakery", "fast-food", "hamburger", "gyudon", "conveyor-belt-sushi"}
)

BAR_TYPES = frozenset({"bar", "night_club", "pub", "izakaya_restaurant"})
ALCOHOL_TAGS = frozenset({"serves_beer", "serves_wine", "serves_cocktails"})

# Food terms matched against review text to synthesize a recommended menu.
MENU_KEYWORDS: Tuple[str, ...] = (
    "唐揚げ", "焼き鳥", "焼鳥", "刺身", "餃子", "ラーメン", "つけ麺", "チャーハン",
    "ハイボール", "生ビール", "日本酒", "ワイン", "カクテル", "レモンサワー",
    "もつ鍋", "おでん", "天ぷら", "寿司", "ハンバーグ", "パスタ", "ピザ",
    "カレー", "ステーキ", "ホルモン", "カルビ", "タン塩", "だし巻き", "ポテトサラダ",
    "パンケーキ", "ケーキ", "コーヒー",
)

DEFAULT_QUERIES: Tuple[str, ...] = (
    "飲食店", "居酒屋", "バー", "深夜営業", "カフェ", "ラーメン",
    "中華", "焼肉", "イタリアン", "ダイニング", "バル",
)

LOCAL_QUERY_TEMPLATES: Tuple[str, ...] = (
    "{loc} 居酒屋 個人店",
    "{loc} バー 隠れ家",
    "{loc} 焼肉 名店",
    "{loc} 美味しい店",
)

CURRENT_LOCATION_LABEL = "現在地周辺"
NOT_FOUND_SUFFIX = "が見つかりませんでした"

"""Prefecture canonicalization.

Profiles store prefecture as free text, and older rows hold short forms
("東京" rather than "東京都"). Aggregation and lookups go through two
functions:

- ``get_prefecture_match_values``: canonical name -> every stored variant.
- ``normalize_prefecture``: any stored value -> canonical name, via a reverse
  index built once. Unknown values come back unchanged (trimmed) so legacy
  data is still counted instead of being dropped.
"""

from __future__ import annotations

from functools import lru_cache

REGION_LABELS: dict[str, str] = {
    "hokkaido": "北海道",
    "tohoku": "東北",
    "kanto": "関東",
    "chubu": "中部",
    "kinki": "近畿",
    "chugoku": "中国",
    "shikoku": "四国",
    "kyushu": "九州・沖縄",
}

# Canonical name -> region key, in JIS order.
PREFECTURE_REGION_MAP: dict[str, str] = {
    "北海道": "hokkaido",
    "青森県": "tohoku",
    "岩手県": "tohoku",
    "宮城県": "tohoku",
    "秋田県": "tohoku",
    "山形県": "tohoku",
    "福島県": "tohoku",
    "茨城県": "kanto",
    "栃木県": "kanto",
    "群馬県": "kanto",
    "埼玉県": "kanto",
    "千葉県": "kanto",
    "東京都": "kanto",
    "神奈川県": "kanto",
    "新潟県": "chubu",
    "富山県": "chubu",
    "石川県": "chubu",
    "福井県": "chubu",
    "山梨県": "chubu",
    "長野県": "chubu",
    "岐阜県": "chubu",
    "静岡県": "chubu",
    "愛知県": "chubu",
    "三重県": "kinki",
    "滋賀県": "kinki",
    "京都府": "kinki",
    "大阪府": "kinki",
    "兵庫県": "kinki",
    "奈良県": "kinki",
    "和歌山県": "kinki",
    "鳥取県": "chugoku",
    "島根県": "chugoku",
    "岡山県": "chugoku",
    "広島県": "chugoku",
    "山口県": "chugoku",
    "徳島県": "shikoku",
    "香川県": "shikoku",
    "愛媛県": "shikoku",
    "高知県": "shikoku",
    "福岡県": "kyushu",
    "佐賀県": "kyushu",
    "長崎県": "kyushu",
    "熊本県": "kyushu",
    "大分県": "kyushu",
    "宮崎県": "kyushu",
    "鹿児島県": "kyushu",
    "沖縄県": "kyushu",
}

PREFECTURES: tuple[str, ...] = tuple(PREFECTURE_REGION_MAP)

_STRIPPABLE_SUFFIXES = ("都", "府", "県")


def get_prefectures_by_region(region: str) -> list[str]:
    return [name for name, key in PREFECTURE_REGION_MAP.items() if key == region]


def get_prefecture_match_values(canonical_name: str) -> list[str]:
    """Return the stored values that mean ``canonical_name``.

    >>> get_prefecture_match_values("東京都")
    ['東京都', '東京']
    >>> get_prefecture_match_values("北海道")
    ['北海道']
    """
    if canonical_name == "北海道":
        return ["北海道"]
    if len(canonical_name) > 1 and canonical_name.endswith(_STRIPPABLE_SUFFIXES):
        return [canonical_name, canonical_name[:-1]]
    return [canonical_name]


@lru_cache(maxsize=1)
def _reverse_index() -> dict[str, str]:
    index: dict[str, str] = {}
    for name in PREFECTURES:
        for variant in get_prefecture_match_values(name):
            index[variant] = name
    return index


def normalize_prefecture(stored: str) -> str:
    """Map a stored prefecture value to its canonical name (unknown values pass through)."""
    trimmed = stored.strip()
    if not trimmed:
        return trimmed
    return _reverse_index().get(trimmed, trimmed)
"""
categories.py — Treatment taxonomy and the payment-item classifier.

Every payment item carries a free-text (category, name) pair. classify()
maps it onto a fixed taxonomy: specialty -> subcategory -> category id.
The category id is the aggregation key used by every view.
"""

from typing import NamedTuple


SPECIALTIES = ("surgery", "dermatology", "hair_removal", "other")

SPECIALTY_LABELS = {
    "surgery": "外科",
    "dermatology": "皮膚科",
    "hair_removal": "脱毛",
    "other": "その他",
}

# Specialties counted as beauty revenue (美容) in goal tracking
BEAUTY_SPECIALTIES = frozenset({"surgery", "dermatology", "hair_removal"})

UNCATEGORIZED = "uncategorized"


class Category(NamedTuple):
    category_id: str
    specialty: str
    labels: tuple  # first entry is the display label, the rest are aliases

    @property
    def label(self):
        return self.labels[0]


class Classification(NamedTuple):
    specialty: str
    subcategory: str
    category_id: str


# ── Canonical category table (ordered for display) ──────────────────────────
CATEGORIES = (
    Category("surgery_double_eyelid", "surgery", ("二重",)),
    Category("surgery_dark_circles", "surgery", ("くま治療",)),
    Category("surgery_thread_lift", "surgery", ("糸リフト",)),
    Category("surgery_face_slimming", "surgery", ("小顔（S,BF)",)),
    Category("surgery_nose_philtrum", "surgery", ("鼻・人中手術",)),
    Category("surgery_body_liposuction", "surgery", ("ボディー脂肪吸引",)),
    Category("surgery_breast_augmentation", "surgery", ("豊胸",)),
    Category("surgery_other", "surgery", ("その他外科",)),
    Category("dermatology_injection", "dermatology", ("注入",)),
    # Two source labels share one id; revenue is merged under "スキン".
    Category("dermatology_skin", "dermatology", ("スキン", "スキン（インモード/HIFU）")),
    Category("hair_removal", "hair_removal", ("脱毛",)),
    Category("other_piercing", "other", ("ピアス",)),
    Category("other_products", "other", ("物販",)),
    Category("other_anesthesia_needle_pack", "other", ("麻酔・針・パック",)),
    Category(UNCATEGORIZED, "other", ("未分類",)),
)

_BY_ID = {c.category_id: c for c in CATEGORIES}
_BY_LABEL = {label: c for c in CATEGORIES for label in c.labels}

CATEGORY_IDS = tuple(c.category_id for c in CATEGORIES)

# (category_id, name keywords, category keywords), most specific first.
# Keywords are compared against lower-cased text.
_KEYWORD_RULES = (
    ("surgery_double_eyelid", ("二重", "double", "eyelid"), ("二重",)),
    ("surgery_dark_circles", ("くま", "dark", "circle"), ("くま",)),
    ("surgery_thread_lift", ("糸", "thread", "lift"), ("糸",)),
    ("surgery_face_slimming", ("小顔", "face", "slimming"), ("小顔",)),
    ("surgery_nose_philtrum", ("鼻", "人中", "nose", "philtrum"), ("鼻", "人中")),
    ("surgery_body_liposuction", ("脂肪吸引", "liposuction", "body"), ("脂肪吸引",)),
    ("surgery_breast_augmentation", ("豊胸", "breast", "augmentation"), ("豊胸",)),
    ("dermatology_injection", ("注入", "injection", "ボトックス", "ヒアルロン"), ("注入",)),
    ("dermatology_skin", ("スキン", "skin", "レーザー", "laser"), ("スキン",)),
    ("hair_removal", ("脱毛", "hair", "removal"), ("脱毛",)),
    ("other_piercing", ("ピアス", "piercing"), ("ピアス",)),
    ("other_products", ("物販", "product", "商品"), ("物販",)),
    ("other_anesthesia_needle_pack", ("麻酔", "針", "パック", "anesthesia", "needle", "pack"),
     ("麻酔", "針", "パック")),
)

_SURGERY_KEYWORDS = ("手術", "surgery", "外科")


def _text(value):
    if value is None:
        return ""
    return str(value).strip().lower()


def _result(category_id):
    cat = _BY_ID[category_id]
    return Classification(cat.specialty, cat.label, cat.category_id)


def classify(category, name):
    """Classify a payment item's (category, name) pair.

    Total and deterministic: any input, including None, yields a
    Classification whose category_id is one of CATEGORY_IDS.
    """
    category_l = _text(category)
    name_l = _text(name)

    # Already-canonical input (an id or a display label) passes straight through
    if category_l in _BY_ID:
        return _result(category_l)
    raw_category = str(category).strip() if category is not None else ""
    if raw_category in _BY_LABEL:
        return _result(_BY_LABEL[raw_category].category_id)

    if "脱毛" in category_l:
        return _result("hair_removal")

    for category_id, name_words, category_words in _KEYWORD_RULES:
        if any(w in name_l for w in name_words) or any(w in category_l for w in category_words):
            return _result(category_id)

    if any(w in name_l or w in category_l for w in _SURGERY_KEYWORDS):
        return _result("surgery_other")

    return _result(UNCATEGORIZED)


def get_category(category_id):
    """Return the Category for an id, or None."""
    return _BY_ID.get(category_id)


def label_for(category_id):
    cat = _BY_ID.get(category_id)
    return cat.label if cat else _BY_ID[UNCATEGORIZED].label


def category_id_for_label(label):
    """Resolve a display label (or alias) to its category id."""
    cat = _BY_LABEL.get((label or "").strip())
    return cat.category_id if cat else UNCATEGORIZED


def specialty_label(specialty):
    return SPECIALTY_LABELS.get(specialty, SPECIALTY_LABELS["other"])


def categories_for(specialty):
    return [c for c in CATEGORIES if c.specialty == specialty]


def category_hierarchy():
    """Specialty -> subcategories tree, in display order."""
    return [
        {
            "specialty": s,
            "label": SPECIALTY_LABELS[s],
            "subcategories": categories_for(s),
        }
        for s in SPECIALTIES
    ]


def is_beauty(specialty):
    return specialty in BEAUTY_SPECIALTIES

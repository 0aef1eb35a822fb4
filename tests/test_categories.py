import pytest

from clinic_dashboard.categories import (
    CATEGORY_IDS, SPECIALTIES, UNCATEGORIZED, category_hierarchy, category_id_for_label,
    classify, get_category, label_for,
)


ODD_INPUTS = [
    (None, None), ("", ""), (123, 4.5), ("   ", "   "), ("unknown", "謎の施術"),
    ("SURGERY_DOUBLE_EYELID", None), (None, "Laser Toning"), (["x"], {"y": 1}),
]


@pytest.mark.parametrize("category,name", ODD_INPUTS)
def test_classify_is_total(category, name):
    result = classify(category, name)
    assert result.category_id in CATEGORY_IDS
    assert result.specialty in SPECIALTIES
    assert result.subcategory


@pytest.mark.parametrize("category,name", ODD_INPUTS)
def test_classify_is_deterministic(category, name):
    assert classify(category, name) == classify(category, name)


def test_canonical_id_passes_through():
    assert classify("surgery_double_eyelid", None).category_id == "surgery_double_eyelid"
    assert classify(" Dermatology_Injection ", "anything").category_id == "dermatology_injection"


def test_hair_removal_category_beats_name_keywords():
    result = classify("医療脱毛", "二重 全顔セット")
    assert result.category_id == "hair_removal"
    assert result.specialty == "hair_removal"


@pytest.mark.parametrize("name,expected", [
    ("二重埋没法", "surgery_double_eyelid"),
    ("くま取り", "surgery_dark_circles"),
    ("ヒアルロン酸注入", "dermatology_injection"),
    ("ボトックス", "dermatology_injection"),
    ("レーザートーニング", "dermatology_skin"),
    ("ピアス穴あけ", "other_piercing"),
    ("眼瞼下垂手術", "surgery_other"),
])
def test_name_keywords(name, expected):
    assert classify("", name).category_id == expected


def test_unmatched_input_is_uncategorized():
    result = classify(None, None)
    assert result.category_id == UNCATEGORIZED
    assert result.specialty == "other"
    assert result.subcategory == "未分類"


def test_duplicate_skin_labels_merge_into_one_id():
    primary = classify("スキン", None)
    variant = classify("スキン（インモード/HIFU）", None)
    assert primary.category_id == variant.category_id == "dermatology_skin"
    assert label_for("dermatology_skin") == "スキン"
    assert category_id_for_label("スキン（インモード/HIFU）") == "dermatology_skin"
    assert get_category("dermatology_skin").labels == ("スキン", "スキン（インモード/HIFU）")


def test_category_hierarchy_covers_every_id():
    tree = category_hierarchy()
    assert [node["specialty"] for node in tree] == list(SPECIALTIES)
    ids = [c.category_id for node in tree for c in node["subcategories"]]
    assert sorted(ids) == sorted(CATEGORY_IDS)


def test_label_for_unknown_id():
    assert label_for("nope") == "未分類"

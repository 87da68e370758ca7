import re
from types import MappingProxyType
from typing import Mapping, Pattern, Tuple

from .schemas import Category

# Iteration order of every table below follows Category declaration order;
# category tie-breaks depend on it.

CATEGORY_KEYWORDS = MappingProxyType({
    Category.POTHOLE: ("pothole", "road", "crack", "asphalt", "pavement", "hole", "bump", "uneven"),
    Category.STREETLIGHT: ("light", "lamp", "bulb", "dark", "illumination", "pole", "electricity", "broken light"),
    Category.GARBAGE: ("trash", "garbage", "waste", "bin", "dump", "litter", "smell", "overflow", "dirty"),
    Category.WATER_LEAK: ("water", "leak", "pipe", "burst", "flooding", "wet", "drip", "plumbing"),
    Category.DRAINAGE: ("drain", "sewer", "flood", "water", "clog", "overflow", "storm", "gutter"),
    Category.SIDEWALK: ("sidewalk", "pavement", "walkway", "pedestrian", "crack", "broken", "uneven"),
    Category.TRAFFIC_SIGNAL: ("signal", "traffic", "light", "red", "green", "yellow", "intersection", "crossing"),
    Category.SIGNS: ("sign", "board", "missing", "damaged", "faded", "fallen", "visibility"),
    Category.PARK_EQUIPMENT: ("park", "playground", "bench", "swing", "slide", "equipment", "broken"),
    Category.FALLEN_TREE: ("tree", "fallen", "branch", "storm", "blocking", "road", "path"),
    Category.ENCROACHMENT: ("encroachment", "illegal", "construction", "blocking", "unauthorized", "violation"),
    Category.OTHERS: (),
})


def _compile(keywords: Tuple[str, ...]) -> Tuple[Tuple[Pattern, int], ...]:
    return tuple(
        (re.compile(rf"\b{re.escape(kw)}\b", re.IGNORECASE), 2 if len(kw) > 4 else 1)
        for kw in keywords
    )


CATEGORY_PATTERNS = MappingProxyType(
    {category: _compile(keywords) for category, keywords in CATEGORY_KEYWORDS.items()}
)

SEVERITY_INDICATORS = MappingProxyType({
    "critical": ("emergency", "dangerous", "urgent", "blocking", "major", "severe", "critical"),
    "high": ("important", "significant", "affecting", "multiple", "busy", "main"),
    "moderate": ("minor", "small", "occasional", "some", "moderate"),
    "low": ("cosmetic", "aesthetic", "slight", "barely", "minimal"),
})

URGENT_WORDS = ("urgent", "emergency", "dangerous", "blocking")

DEPARTMENTS = MappingProxyType({
    Category.POTHOLE: "Roads & Infrastructure",
    Category.STREETLIGHT: "Electrical Department",
    Category.GARBAGE: "Sanitation Department",
    Category.WATER_LEAK: "Water Works Department",
    Category.DRAINAGE: "Water Works Department",
    Category.SIDEWALK: "Roads & Infrastructure",
    Category.TRAFFIC_SIGNAL: "Traffic Management",
    Category.SIGNS: "Traffic Management",
    Category.PARK_EQUIPMENT: "Parks & Recreation",
    Category.FALLEN_TREE: "Parks & Recreation",
    Category.ENCROACHMENT: "Enforcement Department",
    Category.OTHERS: "General Administration",
})

# days
BASE_ETA_DAYS = MappingProxyType({
    Category.POTHOLE: 3,
    Category.STREETLIGHT: 1,
    Category.GARBAGE: 0.5,
    Category.WATER_LEAK: 1,
    Category.DRAINAGE: 2,
    Category.SIDEWALK: 5,
    Category.TRAFFIC_SIGNAL: 0.5,
    Category.SIGNS: 2,
    Category.PARK_EQUIPMENT: 3,
    Category.FALLEN_TREE: 1,
    Category.ENCROACHMENT: 7,
    Category.OTHERS: 3,
})

CATEGORY_PRIORITY = MappingProxyType({
    Category.WATER_LEAK: 30,
    Category.TRAFFIC_SIGNAL: 25,
    Category.FALLEN_TREE: 20,
    Category.DRAINAGE: 15,
    Category.POTHOLE: 10,
    Category.STREETLIGHT: 10,
    Category.GARBAGE: 5,
    Category.SIDEWALK: 5,
    Category.SIGNS: 5,
    Category.PARK_EQUIPMENT: 5,
    Category.ENCROACHMENT: 0,
    Category.OTHERS: 0,
})

SEVERITY_ADJUSTMENT = MappingProxyType({
    **{category: 0 for category in Category},
    Category.WATER_LEAK: 1,
    Category.TRAFFIC_SIGNAL: 1,
    Category.FALLEN_TREE: 1,
    Category.GARBAGE: -1,
})

SEVERITY_LABELS = MappingProxyType({
    1: "Low",
    2: "Minor",
    3: "Moderate",
    4: "High",
    5: "Critical",
})

# (min_lat, max_lat, min_lng, max_lng), bounds inclusive
CENTRAL_AREA = (28.61, 28.62, 77.20, 77.23)
CENTRAL_AREA_BONUS = 15


def _check_total(name: str, table: Mapping) -> None:
    missing = [c.value for c in Category if c not in table]
    if missing:
        raise RuntimeError(f"{name} has no entry for: {', '.join(missing)}")


for _name, _table in (
    ("CATEGORY_KEYWORDS", CATEGORY_KEYWORDS),
    ("DEPARTMENTS", DEPARTMENTS),
    ("BASE_ETA_DAYS", BASE_ETA_DAYS),
    ("CATEGORY_PRIORITY", CATEGORY_PRIORITY),
    ("SEVERITY_ADJUSTMENT", SEVERITY_ADJUSTMENT),
):
    _check_total(_name, _table)

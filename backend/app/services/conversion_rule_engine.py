"""
conversion_rule_engine.py — Pattern-based conversion suggestions for materials.

When a material is first entered ("Semen Gresik", "sak") the estimator looks
up a stored rule list to suggest its base unit and conversion factor.  Rules
are a priority-ordered dispatch table: the first rule whose material pattern
matches the name AND whose unit pattern matches the market unit wins.

Patterns are case-insensitive regular expressions ("sak|zak"); a pattern
that is not valid regex is treated as a plain substring.  An empty pattern
matches anything.  No match is a normal outcome and returns None.

Rule snapshots are explicit: a ConversionRuleMatcher holds the list it was
given and is refreshed by the caller after any rule edit.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.services.unit_converter import (
    SAK_CEMENT_KG,
    TRUCK_SAND_M3,
    granite_box_conversion,
)


DEFAULT_PRIORITY: int = 100
BUILTIN_PRIORITY: int = 1000

JOB_CATEGORY_KEYWORDS = (
    ("struktur_beton", ("beton", "struktur", "balok", "kolom", "footplate")),
    ("pekerjaan_lantai", ("lantai", "granit", "keramik")),
    ("pekerjaan_dinding", ("dinding", "bata", "tembok")),
    ("finishing", ("plester", "acian", "finishing")),
)

_GRADE_IN_TEXT_RE = re.compile(r"k[-\s]?(\d+)", re.IGNORECASE)


@dataclass
class ConversionRule:
    rule_name: str
    material_pattern: str
    unit_pattern: str
    conversion_factor: float
    base_unit: str
    conversion_description: str = ""
    priority: int = DEFAULT_PRIORITY
    id: Optional[int] = None
    material_type: Optional[str] = None
    job_category_pattern: Optional[str] = None
    conversion_data: Optional[Dict[str, Any]] = None
    is_active: bool = True

    @classmethod
    def from_record(cls, record: Any) -> "ConversionRule":
        """Build from a dict or an ORM row."""
        if isinstance(record, ConversionRule):
            return record
        get = record.get if isinstance(record, Mapping) else (lambda k, d=None: getattr(record, k, d))
        priority = get("priority")
        return cls(
            id=get("id"),
            rule_name=get("rule_name") or "",
            material_pattern=get("material_pattern") or "",
            unit_pattern=get("unit_pattern") or "",
            conversion_factor=float(get("conversion_factor") or 1.0),
            base_unit=get("base_unit") or "",
            conversion_description=get("conversion_description") or "",
            priority=DEFAULT_PRIORITY if priority is None else int(priority),
            material_type=get("material_type"),
            job_category_pattern=get("job_category_pattern"),
            conversion_data=get("conversion_data"),
            is_active=bool(get("is_active", True)),
        )


@dataclass
class Suggestion:
    rule_name: str
    conversion_factor: float
    base_unit: str
    conversion_description: str
    priority: int
    rule_id: Optional[int] = None
    material_type: Optional[str] = None
    conversion_data: Optional[Dict[str, Any]] = None
    extra_info: Dict[str, Any] = field(default_factory=dict)
    source: str = "database_rule"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "conversion_factor": self.conversion_factor,
            "base_unit": self.base_unit,
            "conversion_description": self.conversion_description,
            "priority": self.priority,
            "material_type": self.material_type,
            "conversion_data": self.conversion_data,
            "extra_info": self.extra_info,
            "source": self.source,
        }


# ---------------------------------------------------------------------------
# Built-in rules (opt-in, evaluated after stored rules)
# ---------------------------------------------------------------------------
_GRANITE = granite_box_conversion()

BUILTIN_RULES: List[ConversionRule] = [
    ConversionRule(
        rule_name="Semen per sak",
        material_pattern="semen|cement",
        unit_pattern="sak|zak",
        conversion_factor=SAK_CEMENT_KG,
        base_unit="kg",
        conversion_description=f"1 sak = {SAK_CEMENT_KG:g} kg",
        priority=BUILTIN_PRIORITY,
        material_type="semen",
    ),
    ConversionRule(
        rule_name="Granit / keramik per dus",
        material_pattern="granit|keramik|tile",
        unit_pattern="dus|box",
        conversion_factor=_GRANITE["conversion_factor"],
        base_unit=_GRANITE["base_unit"],
        conversion_description=_GRANITE["conversion_description"],
        priority=BUILTIN_PRIORITY,
        material_type="granit",
    ),
    ConversionRule(
        rule_name="Pasir japanan per truk",
        material_pattern="pasir.*japanan|japanan.*pasir",
        unit_pattern="truk|truck",
        conversion_factor=TRUCK_SAND_M3,
        base_unit="m³",
        conversion_description=f"1 truk = {TRUCK_SAND_M3:g} m³",
        priority=BUILTIN_PRIORITY,
        material_type="pasir",
        conversion_data={"specific_usage": {"granite_per_m2": 0.0343}},
    ),
]


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------

def pattern_matches(pattern: Optional[str], text: str) -> bool:
    """Case-insensitive regex search, with substring containment as fallback."""
    if not pattern:
        return True
    pattern = pattern.strip()
    if pattern.lower() in text:
        return True
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error:
        return False


def detect_job_category(job_name: Optional[str]) -> str:
    name = (job_name or "").lower()
    for category, keywords in JOB_CATEGORY_KEYWORDS:
        if any(k in name for k in keywords):
            return category
    return "umum"


def detect_concrete_grade(job_name: Optional[str]) -> Optional[str]:
    """``"Balok Beton K 300"`` → ``"K-300"``."""
    match = _GRADE_IN_TEXT_RE.search(job_name or "")
    return f"K-{match.group(1)}" if match else None


def _grade_lookup(table: Mapping[str, Any], grade: str) -> Optional[Any]:
    # tables may be keyed "K-225" or "K225"
    for key in (grade, grade.replace("-", "")):
        if key in table:
            return table[key]
    return None


def extra_info_for(rule: ConversionRule, job_name: Optional[str] = None) -> Dict[str, Any]:
    """Informational hints from a rule's conversion_data; never changes the factor."""
    info: Dict[str, Any] = {}
    data = rule.conversion_data or {}
    if job_name:
        info["job_category"] = detect_job_category(job_name)
        grade = detect_concrete_grade(job_name)
        if grade:
            info["concrete_grade"] = grade
            usage_table = data.get("usage_per_m3_concrete") or {}
            usage = _grade_lookup(usage_table, grade)
            if usage is not None:
                info["requirement"] = {
                    "quantity": usage,
                    "unit": f"{rule.base_unit}/m³",
                    "grade": grade,
                }
    specific = data.get("specific_usage") or {}
    if specific.get("granite_per_m2") is not None:
        info["requirement"] = {
            "quantity": specific["granite_per_m2"],
            "unit": f"{rule.base_unit}/m²",
            "work_type": "granite",
        }
    return info


def _sorted_rules(rules: Iterable[Any]) -> List[ConversionRule]:
    parsed = [ConversionRule.from_record(r) for r in rules]
    # stable: equal priorities keep caller order
    return sorted(parsed, key=lambda r: r.priority)


def _first_match(rules: List[ConversionRule], name: str, unit: str) -> Optional[ConversionRule]:
    for rule in rules:
        if not rule.is_active:
            continue
        if pattern_matches(rule.material_pattern, name) and pattern_matches(rule.unit_pattern, unit):
            return rule
    return None


def _to_suggestion(rule: ConversionRule, job_name: Optional[str]) -> Suggestion:
    return Suggestion(
        rule_id=rule.id,
        rule_name=rule.rule_name,
        conversion_factor=rule.conversion_factor,
        base_unit=rule.base_unit,
        conversion_description=rule.conversion_description,
        priority=rule.priority,
        material_type=rule.material_type,
        conversion_data=rule.conversion_data,
        extra_info=extra_info_for(rule, job_name),
        source="builtin_rule" if any(rule is b for b in BUILTIN_RULES) else "database_rule",
    )


def suggest_conversion(
    material_name: Optional[str],
    market_unit: Optional[str],
    rules: Iterable[Any],
    job_name: Optional[str] = None,
) -> Optional[Suggestion]:
    """
    First rule (ascending priority) matching both name and unit, or None.

    Empty inputs return None without scanning.
    """
    name = (material_name or "").strip().lower()
    unit = (market_unit or "").strip().lower()
    if not name or not unit:
        return None
    rule = _first_match(_sorted_rules(rules), name, unit)
    return _to_suggestion(rule, job_name) if rule else None


def job_type_material_requirements(
    job_name: str,
    rules: Iterable[Any],
    default_grade: str = "K-250",
) -> List[Dict[str, Any]]:
    """
    Per-m³ requirements for a job type from rules whose job_category_pattern
    matches the job name and that carry a usage table for its concrete grade.
    """
    grade = detect_concrete_grade(job_name) or default_grade
    name = (job_name or "").lower()
    requirements = []
    for rule in _sorted_rules(rules):
        if not rule.is_active or not rule.job_category_pattern:
            continue
        if not pattern_matches(rule.job_category_pattern, name):
            continue
        usage = _grade_lookup((rule.conversion_data or {}).get("usage_per_m3_concrete") or {}, grade)
        if usage is None:
            continue
        requirements.append({
            "material_type": rule.rule_name,
            "unit": rule.unit_pattern.split("|")[0] if rule.unit_pattern else "",
            "quantity_per_unit": usage,
            "description": f"Kebutuhan untuk {grade}",
            "conversion_info": rule.conversion_description,
            "rule_id": rule.id,
        })
    return requirements


class ConversionRuleMatcher:
    """
    Holds one snapshot of the rule list.

    ``version`` increments on every ``refresh``; callers re-fetch rules from
    the repository after editing them and refresh the matcher.
    """

    def __init__(self, rules: Iterable[Any] = (), include_builtin: bool = False) -> None:
        self.include_builtin = include_builtin
        self.version = 0
        self._rules: List[ConversionRule] = []
        self.refresh(rules)

    def refresh(self, rules: Iterable[Any]) -> None:
        snapshot = list(rules)
        if self.include_builtin:
            snapshot += BUILTIN_RULES
        self._rules = _sorted_rules(snapshot)
        self.version += 1

    @property
    def rules(self) -> List[ConversionRule]:
        return list(self._rules)

    def suggest(self, material_name: Optional[str], market_unit: Optional[str],
                job_name: Optional[str] = None) -> Optional[Suggestion]:
        return suggest_conversion(material_name, market_unit, self._rules, job_name)

    def requirements(self, job_name: str) -> List[Dict[str, Any]]:
        return job_type_material_requirements(job_name, self._rules)

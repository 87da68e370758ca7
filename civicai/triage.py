import logging
import math
from typing import Dict, Optional, Tuple

from .schemas import Category, GeoLocation, IssueReport, TriageResult
from .tables import (
    BASE_ETA_DAYS,
    CATEGORY_PATTERNS,
    CATEGORY_PRIORITY,
    CENTRAL_AREA,
    CENTRAL_AREA_BONUS,
    DEPARTMENTS,
    SEVERITY_ADJUSTMENT,
    SEVERITY_INDICATORS,
    URGENT_WORDS,
)

logger = logging.getLogger("civicai.triage")

DEFAULT_SEVERITY = 3
FALLBACK_CATEGORY = Category.POTHOLE


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class TriageEngine:
    """Keyword-driven classifier for incoming issue reports.

    Holds no state; every lookup goes through the constant tables in
    ``civicai.tables``.
    """

    def triage(self, report: IssueReport) -> TriageResult:
        text = report.text.lower()

        scores = self.category_scores(text)
        category, confidence = self.best_category(scores, report.category_hint)
        severity = self.analyze_severity(text, category, report.severity_hint)
        priority = self.priority_score(category, severity, report.location)

        logger.debug(
            "triage category=%s confidence=%.2f severity=%d priority=%d scores=%s",
            category.value, confidence, severity, priority,
            {c.value: s for c, s in scores.items() if s},
        )

        return TriageResult(
            category=category,
            severity=severity,
            department=self.department(category),
            eta=self.estimate_eta(category, severity),
            confidence=confidence,
            priority_score=priority,
            reasoning=self.reasoning(confidence, severity, text),
        )

    def category_scores(self, text: str) -> Dict[Category, int]:
        scores = {}
        for category, patterns in CATEGORY_PATTERNS.items():
            score = 0
            for pattern, weight in patterns:
                score += len(pattern.findall(text)) * weight
            scores[category] = score
        return scores

    def best_category(
        self, scores: Dict[Category, int], hint: Optional[Category] = None
    ) -> Tuple[Category, float]:
        max_score = max(scores.values())
        best = None
        if max_score > 0:
            # first category reaching the max, in table order
            best = next(c for c, s in scores.items() if s == max_score)

        if hint is not None and hint == best:
            return best, min(0.95, 0.7 + max_score * 0.05)

        if hint is not None and scores.get(hint, 0) < max_score * 0.5:
            return hint, 0.6

        confidence = min(0.9, 0.5 + max_score * 0.1) if max_score > 0 else 0.3
        return best or hint or FALLBACK_CATEGORY, confidence

    def analyze_severity(
        self, text: str, category: Category, hint: Optional[int] = None
    ) -> int:
        severity = hint or DEFAULT_SEVERITY

        # order matters: the low ceiling runs last and wins over both floors
        if any(word in text for word in SEVERITY_INDICATORS["critical"]):
            severity = max(severity, 4)
        if any(word in text for word in SEVERITY_INDICATORS["high"]):
            severity = max(severity, 3)
        if any(word in text for word in SEVERITY_INDICATORS["low"]):
            severity = min(severity, 2)

        severity += SEVERITY_ADJUSTMENT[category]
        return max(1, min(5, _round_half_up(severity)))

    def department(self, category: Category) -> str:
        return DEPARTMENTS[category]

    def estimate_eta(self, category: Category, severity: int) -> str:
        days = BASE_ETA_DAYS[category]
        if severity >= 4:
            days *= 0.5
        elif severity <= 2:
            days *= 1.5

        if days < 1:
            return f"{_round_half_up(days * 24)} hours"
        return f"{_round_half_up(days)} days"

    def priority_score(
        self, category: Category, severity: int, location: Optional[GeoLocation] = None
    ) -> int:
        score = severity * 20 + CATEGORY_PRIORITY[category]

        if location is not None:
            min_lat, max_lat, min_lng, max_lng = CENTRAL_AREA
            if min_lat <= location.lat <= max_lat and min_lng <= location.lng <= max_lng:
                score += CENTRAL_AREA_BONUS

        return min(100, score)

    def reasoning(self, confidence: float, severity: int, text: str) -> str:
        reasons = []

        if confidence > 0.8:
            reasons.append("High confidence categorization based on keyword analysis")
        elif confidence < 0.5:
            reasons.append("Low confidence - manual review recommended")

        if severity >= 4:
            reasons.append("High severity detected from description")

        if any(word in text for word in URGENT_WORDS):
            reasons.append("Urgent language detected")

        return ". ".join(reasons) or "Standard categorization applied"


triage_engine = TriageEngine()


def triage(report: IssueReport) -> TriageResult:
    return triage_engine.triage(report)

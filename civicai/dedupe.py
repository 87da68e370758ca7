import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Set

from .geo import distance_km
from .phash import compare_hashes, media_hash
from .schemas import (
    DedupeResult,
    ExistingIssue,
    GeoLocation,
    IssueReport,
    Media,
    MediaType,
    TicketStatus,
)

logger = logging.getLogger("civicai.dedupe")

CANDIDATE_RADIUS_KM = 0.5
CANDIDATE_WINDOW = timedelta(days=7)
FULL_GEO_MATCH_KM = 0.1
CLOSE_MATCH_KM = 0.05
RECENT_WINDOW = timedelta(hours=24)

TEXT_WEIGHT = 40
GEO_WEIGHT = 30
CATEGORY_WEIGHT = 20
MEDIA_WEIGHT = 10
# geo and media weights count even when those dimensions are skipped
MAX_SCORE = TEXT_WEIGHT + GEO_WEIGHT + CATEGORY_WEIGHT + MEDIA_WEIGHT

DUPLICATE_THRESHOLD = 0.75
RELATED_THRESHOLD = 0.5


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _words(text: str) -> Set[str]:
    return set(text.lower().split())


def text_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity of the lower-cased word sets."""
    words1, words2 = _words(text1), _words(text2)
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def media_similarity(media1: Sequence[Media], media2: Sequence[Media]) -> float:
    best = 0.0
    for m1 in media1:
        if m1.type != MediaType.IMAGE:
            continue
        h1 = media_hash(m1)
        if h1 is None:
            continue
        for m2 in media2:
            if m2.type != MediaType.IMAGE:
                continue
            h2 = media_hash(m2)
            if h2 is None:
                continue
            best = max(best, compare_hashes(h1, h2))
    return best


def _distance(a: Optional[GeoLocation], b: Optional[GeoLocation]) -> Optional[float]:
    if a is None or b is None:
        return None
    return distance_km(a, b)


@dataclass(frozen=True)
class _Match:
    issue: ExistingIssue
    similarity: float
    confidence: float
    reason: str


class DedupeEngine:
    """Decides whether a new report restates an issue already on file."""

    def check_duplicate(
        self,
        report: IssueReport,
        existing: Iterable[ExistingIssue],
        now: Optional[datetime] = None,
    ) -> DedupeResult:
        now = _as_utc(now or datetime.now(timezone.utc))
        snapshot = tuple(existing)

        candidates = self.find_candidates(report, snapshot, now)
        logger.debug("dedupe candidates=%d of %d", len(candidates), len(snapshot))

        if not candidates:
            return DedupeResult(is_duplicate=False, similarity=0.0, confidence=0.9)

        best = self.find_best_match(report, candidates, now)

        if best.similarity > DUPLICATE_THRESHOLD:
            logger.info(
                "duplicate of %s similarity=%.3f", best.issue.id, best.similarity
            )
            return DedupeResult(
                is_duplicate=True,
                master_case_id=best.issue.id,
                similarity=best.similarity,
                confidence=best.confidence,
                reason=best.reason,
                suggested_action="merge",
            )

        if best.similarity > RELATED_THRESHOLD:
            return DedupeResult(
                is_duplicate=False,
                master_case_id=best.issue.id,
                similarity=best.similarity,
                confidence=best.confidence,
                related_cases=[best.issue.id],
                reason="Similar but distinct issue",
                suggested_action="link",
            )

        return DedupeResult(
            is_duplicate=False,
            similarity=best.similarity,
            confidence=0.8,
            suggested_action="ignore",
        )

    def find_candidates(
        self, report: IssueReport, existing: Sequence[ExistingIssue], now: datetime
    ) -> List[ExistingIssue]:
        candidates = []
        for issue in existing:
            if issue.category != report.category_hint:
                continue
            if issue.status == TicketStatus.RESOLVED:
                continue
            distance = _distance(report.location, issue.geo)
            if distance is not None and distance > CANDIDATE_RADIUS_KM:
                continue
            if now - _as_utc(issue.created_at) > CANDIDATE_WINDOW:
                continue
            candidates.append(issue)
        return candidates

    def find_best_match(
        self, report: IssueReport, candidates: Sequence[ExistingIssue], now: datetime
    ) -> _Match:
        best = _Match(issue=candidates[0], similarity=0.0, confidence=0.0, reason="")
        for candidate in candidates:
            similarity = self.similarity(report, candidate)
            if similarity > best.similarity:
                best = _Match(
                    issue=candidate,
                    similarity=similarity,
                    confidence=self.confidence(report, candidate, similarity, now),
                    reason=self.reason(report, candidate, similarity),
                )
        return best

    def similarity(self, report: IssueReport, candidate: ExistingIssue) -> float:
        total = text_similarity(report.text, candidate.text) * TEXT_WEIGHT

        distance = _distance(report.location, candidate.geo)
        if distance is not None:
            total += max(0.0, 1 - distance / FULL_GEO_MATCH_KM) * GEO_WEIGHT

        # candidates are pre-filtered on category
        total += CATEGORY_WEIGHT

        if report.media and candidate.media:
            total += media_similarity(report.media, candidate.media) * MEDIA_WEIGHT

        return min(1.0, max(0.0, total / MAX_SCORE))

    def confidence(
        self,
        report: IssueReport,
        candidate: ExistingIssue,
        similarity: float,
        now: datetime,
    ) -> float:
        confidence = similarity

        distance = _distance(report.location, candidate.geo)
        if distance is not None and distance < CLOSE_MATCH_KM:
            confidence += 0.1

        if now - _as_utc(candidate.created_at) < RECENT_WINDOW:
            confidence += 0.05

        return min(0.95, confidence)

    def reason(self, report: IssueReport, candidate: ExistingIssue, similarity: float) -> str:
        reasons = []

        distance = _distance(report.location, candidate.geo)
        if distance is not None and distance < FULL_GEO_MATCH_KM:
            reasons.append(
                f"Located within {_round_half_up(distance * 1000)}m of existing report"
            )

        text_sim = text_similarity(report.text, candidate.text)
        if text_sim > 0.6:
            reasons.append(f"High text similarity ({_round_half_up(text_sim * 100)}%)")

        if similarity > 0.8:
            reasons.append("Very similar issue characteristics")

        return ". ".join(reasons) or f"{_round_half_up(similarity * 100)}% similarity detected"


dedupe_engine = DedupeEngine()


def check_duplicate(
    report: IssueReport,
    existing: Iterable[ExistingIssue],
    now: Optional[datetime] = None,
) -> DedupeResult:
    return dedupe_engine.check_duplicate(report, existing, now)

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(str, Enum):
    POTHOLE = "Pothole"
    STREETLIGHT = "Streetlight"
    GARBAGE = "Garbage"
    WATER_LEAK = "WaterLeak"
    DRAINAGE = "Drainage"
    SIDEWALK = "Sidewalk"
    TRAFFIC_SIGNAL = "TrafficSignal"
    SIGNS = "Signs"
    PARK_EQUIPMENT = "ParkEquipment"
    FALLEN_TREE = "FallenTree"
    ENCROACHMENT = "Encroachment"
    OTHERS = "Others"


class TicketStatus(str, Enum):
    SUBMITTED = "Submitted"
    ACKNOWLEDGED = "Acknowledged"
    IN_PROGRESS = "In-Progress"
    RESOLVED = "Resolved"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GeoLocation(_Model):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False, frozen=True)

    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0, validation_alias=AliasChoices("lng", "lon"))


class Media(_Model):
    id: Optional[str] = None
    uri: Optional[str] = None
    type: MediaType = MediaType.IMAGE
    size: int = Field(default=0, ge=0)
    phash: Optional[str] = None


class IssueReport(_Model):
    """Partial report as authored by a citizen, before persistence."""

    title: str = ""
    description: str = ""
    category_hint: Optional[Category] = Field(
        default=None,
        alias="categoryHint",
        validation_alias=AliasChoices("categoryHint", "category_hint", "category"),
    )
    severity_hint: Optional[int] = Field(
        default=None,
        ge=1,
        le=5,
        alias="severityHint",
        validation_alias=AliasChoices("severityHint", "severity_hint", "severity"),
    )
    location: Optional[GeoLocation] = Field(
        default=None, validation_alias=AliasChoices("location", "geo")
    )
    media: List[Media] = Field(default_factory=list)
    created_at: datetime = Field(
        default_factory=_utcnow,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "created_at"),
    )

    @property
    def text(self) -> str:
        return f"{self.title or ''} {self.description or ''}"


class ExistingIssue(_Model):
    """Stored ticket as supplied by the ticket store snapshot."""

    id: str
    category: Category
    status: TicketStatus = TicketStatus.SUBMITTED
    geo: Optional[GeoLocation] = Field(
        default=None, validation_alias=AliasChoices("geo", "location")
    )
    created_at: datetime = Field(
        ..., alias="createdAt", validation_alias=AliasChoices("createdAt", "created_at")
    )
    title: str = ""
    description: str = ""
    media: List[Media] = Field(default_factory=list)
    severity: Optional[int] = Field(default=None, ge=1, le=5)

    @property
    def text(self) -> str:
        return f"{self.title or ''} {self.description or ''}"

    def as_report(self) -> IssueReport:
        return IssueReport(
            title=self.title,
            description=self.description,
            category_hint=self.category,
            severity_hint=self.severity,
            location=self.geo,
            media=self.media,
            created_at=self.created_at,
        )


class TriageResult(_Model):
    category: Category
    severity: int = Field(..., ge=1, le=5)
    department: str = Field(..., alias="suggestedDept")
    eta: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    priority_score: int = Field(..., ge=0, le=100, alias="priorityScore")
    reasoning: str = ""


class DedupeResult(_Model):
    is_duplicate: bool = Field(..., alias="isDuplicate")
    master_case_id: Optional[str] = Field(default=None, alias="masterCaseId")
    similarity: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: Optional[str] = None
    related_cases: List[str] = Field(default_factory=list, alias="relatedCases")
    suggested_action: Optional[Literal["merge", "link", "ignore"]] = Field(
        default=None, alias="suggestedAction"
    )

    @model_validator(mode="after")
    def _duplicate_has_master(self):
        if self.is_duplicate and not self.master_case_id:
            raise ValueError("duplicate result must carry masterCaseId")
        return self


class TriageReq(_Model):
    report: IssueReport


class DedupeReq(_Model):
    report: IssueReport
    existing: List[ExistingIssue] = Field(default_factory=list)


class BatchReq(_Model):
    issues: List[ExistingIssue]
    ids: Optional[List[str]] = None


class BatchItem(_Model):
    ticket_id: str = Field(..., alias="ticketId")
    triage: Optional[TriageResult] = None
    dedupe: Optional[DedupeResult] = None
    error: Optional[str] = None


class BatchRes(_Model):
    processed: int
    results: List[BatchItem]


class MetricsRes(_Model):
    triage_calls: int = Field(..., alias="triageCalls")
    dedupe_calls: int = Field(..., alias="dedupeCalls")
    duplicates_found: int = Field(..., alias="duplicatesFound")
    avg_processing_ms: float = Field(..., alias="avgProcessingMs")

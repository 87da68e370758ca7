"""Shared fixtures — fixed clock, issue factories and an httpx client bound to the app."""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from civicai import services
from civicai.main import app
from civicai.schemas import (
    Category,
    ExistingIssue,
    GeoLocation,
    IssueReport,
    Media,
    TicketStatus,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

# Connaught Place, inside the central-area box
BASE_LAT = 28.6139
BASE_LNG = 77.2090

# one metre of latitude, in degrees
METRE_LAT = 0.0002698 / 30


def north_of(metres: float, lat: float = BASE_LAT, lng: float = BASE_LNG) -> GeoLocation:
    return GeoLocation(lat=lat + metres * METRE_LAT, lng=lng)


def auth_header(key: str) -> dict:
    return {"X-API-Key": key}


@pytest.fixture
def make_report():
    def _make(
        title: str = "",
        description: str = "",
        category: Category | None = None,
        severity: int | None = None,
        location: GeoLocation | None = None,
        media: list[Media] | None = None,
    ) -> IssueReport:
        return IssueReport(
            title=title,
            description=description,
            category_hint=category,
            severity_hint=severity,
            location=location,
            media=media or [],
            created_at=NOW,
        )
    return _make


@pytest.fixture
def make_issue():
    def _make(
        id: str = "CIV-001",
        category: Category = Category.POTHOLE,
        title: str = "",
        description: str = "",
        status: TicketStatus = TicketStatus.SUBMITTED,
        geo: GeoLocation | None = None,
        age: timedelta = timedelta(hours=1),
        media: list[Media] | None = None,
    ) -> ExistingIssue:
        return ExistingIssue(
            id=id,
            category=category,
            status=status,
            geo=geo,
            created_at=NOW - age,
            title=title,
            description=description,
            media=media or [],
        )
    return _make


@pytest.fixture(autouse=True)
def reset_counters():
    services.COUNTERS.reset()
    yield
    services.COUNTERS.reset()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

"""Calls a running CivicAI sidecar from workflow steps and batch jobs."""
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import requests

from .schemas import BatchRes, DedupeResult, ExistingIssue, IssueReport, TriageResult

logger = logging.getLogger("civicai.client")

DEFAULT_TIMEOUT = 10


class ClientConfigError(RuntimeError):
    pass


def _base_url(base_url: Optional[str]) -> str:
    url = base_url or os.environ.get("CIVICAI_BASE_URL")
    if not url:
        raise ClientConfigError("CIVICAI_BASE_URL is not set")
    return url.rstrip("/")


def _headers() -> Dict[str, str]:
    api_key = os.environ.get("CIVICAI_API_KEY")
    return {"X-API-Key": api_key} if api_key else {}


def _post(url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    resp = requests.post(url, json=payload, headers=_headers(), timeout=DEFAULT_TIMEOUT)
    resp.raise_for_status()
    data = resp.json()
    logger.debug(f"{url} response: {data}")
    return data


def request_triage(report: IssueReport, base_url: Optional[str] = None) -> TriageResult:
    data = _post(
        f"{_base_url(base_url)}/triage",
        {"report": report.model_dump(mode="json", by_alias=True)},
    )
    return TriageResult.model_validate(data)


def request_dedupe(
    report: IssueReport,
    existing: Sequence[ExistingIssue],
    base_url: Optional[str] = None,
) -> DedupeResult:
    data = _post(
        f"{_base_url(base_url)}/dedupe",
        {
            "report": report.model_dump(mode="json", by_alias=True),
            "existing": [issue.model_dump(mode="json", by_alias=True) for issue in existing],
        },
    )
    return DedupeResult.model_validate(data)


def request_batch(
    issues: Sequence[ExistingIssue],
    ids: Optional[List[str]] = None,
    base_url: Optional[str] = None,
) -> BatchRes:
    payload: Dict[str, Any] = {
        "issues": [issue.model_dump(mode="json", by_alias=True) for issue in issues],
    }
    if ids is not None:
        payload["ids"] = ids
    data = _post(f"{_base_url(base_url)}/batch", payload)
    return BatchRes.model_validate(data)

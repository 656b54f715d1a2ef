"""Step-execution backend client: replace a campaign's steps with a compiled list."""

from __future__ import annotations

from typing import Any

import httpx

from ..config import CAMPAIGN_BACKEND_TIMEOUT, CAMPAIGN_BACKEND_TOKEN, CAMPAIGN_BACKEND_URL


def _raise_http_error(resp: httpx.Response, *, hint: str = "") -> None:
    body = ""
    try:
        body = resp.text
    except Exception:
        body = "<unreadable body>"
    msg = f"HTTP {resp.status_code} for {resp.request.method} {resp.request.url}\nResponse body: {body}"
    if hint:
        msg = hint + "\n" + msg
    raise RuntimeError(msg)


def put_campaign_steps(
    campaign_id: str,
    steps: list[dict[str, Any]],
    *,
    base_url: str | None = None,
    token: str | None = None,
    timeout: float | None = None,
) -> Any:
    """PUT /api/v1/campaigns/{id}/steps - the backend replaces all steps with ``steps``."""
    url = f"{(base_url or CAMPAIGN_BACKEND_URL).rstrip('/')}/api/v1/campaigns/{campaign_id}/steps"
    headers: dict[str, str] = {"Content-Type": "application/json"}
    token = token if token is not None else CAMPAIGN_BACKEND_TOKEN
    if token:
        headers["Authorization"] = f"Bearer {token}"
    with httpx.Client(timeout=timeout or CAMPAIGN_BACKEND_TIMEOUT) as client:
        resp = client.put(url, json=steps, headers=headers)
        if resp.status_code >= 400:
            _raise_http_error(resp, hint=f"Step sync rejected for campaign {campaign_id}")
        if not resp.content:
            return None
        return resp.json()

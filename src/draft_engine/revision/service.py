"""Client side of the external revision service."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

import httpx

from draft_engine.runtime import telemetry

from .models import RevisionRequest, RevisionResult, RevisionServiceError


class RevisionService(Protocol):
    """Black box turning selected text plus an instruction into a proposal."""

    async def revise(self, request: RevisionRequest) -> RevisionResult:
        ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, Mapping) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}: Failed to revise text"


class HttpRevisionService:
    """POSTs revision requests as JSON to the revise-text endpoint.

    No local timeout is enforced; the service decides how long a revision
    takes. Pass ``client`` to reuse a connection pool or to inject a
    transport in tests.
    """

    def __init__(
        self,
        url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Mapping[str, str]] = None,
        logger_name: str = "draft_engine.revision",
    ) -> None:
        self.url = url
        self._client = client
        self._headers = dict(headers or {})
        self.logger_name = logger_name

    async def revise(self, request: RevisionRequest) -> RevisionResult:
        with telemetry.span(
            "revision::request",
            logger_name=self.logger_name,
            component="revision_service",
            metadata={"url": self.url, "chars": len(request.selected_text)},
        ) as handle:
            response = await self._post(request.to_payload())
            handle.add_metadata("status", response.status_code)
            if response.is_error:
                raise RevisionServiceError(
                    _error_message(response), status=response.status_code
                )
            try:
                payload: Any = response.json()
            except ValueError as exc:
                raise RevisionServiceError(
                    "Revision service returned invalid JSON",
                    status=response.status_code,
                ) from exc
            if not isinstance(payload, Mapping):
                raise RevisionServiceError(
                    "Revision service returned an unexpected body",
                    status=response.status_code,
                )
            return RevisionResult.from_payload(payload, request=request)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, payload: Mapping[str, str]) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.post(
                    self.url, json=payload, headers=self._headers
                )
            async with httpx.AsyncClient(timeout=None) as client:
                return await client.post(self.url, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise RevisionServiceError(f"Revision request failed: {exc}") from exc


__all__ = ["RevisionService", "HttpRevisionService"]

"""Content-addressed store adapter for an IPFS (Kubo) node's HTTP RPC API."""

import logging
from typing import Any, ClassVar

import httpx
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from medchain.pipeline.exceptions import ContentNotFound, StorageUnavailable
from medchain.storage.base import BaseContentStore

logger = logging.getLogger("medchain.storage")


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500 and not _is_not_found(exc.response)
    return False


def _is_not_found(response: httpx.Response) -> bool:
    if response.status_code == 404:
        return True
    message = response.text.lower()
    return any(marker in message for marker in IpfsStoreAdapter.NOT_FOUND_MARKERS)


class IpfsStoreAdapter(BaseContentStore):
    """Stores envelopes through ``/api/v0/add`` and reads them through ``/api/v0/cat``.

    Transport errors and 5xx responses are retried with jittered exponential
    backoff; once attempts run out the failure surfaces as StorageUnavailable.
    """

    NOT_FOUND_MARKERS: ClassVar[tuple[str, ...]] = (
        "not found",
        "invalid path",
        "invalid cid",
        "failed to resolve",
    )

    def __init__(
        self,
        *,
        api_url: str,
        timeout_seconds: float,
        retry_attempts: int = 3,
        retry_base_seconds: float = 0.2,
        retry_factor: float = 2.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            base_url=api_url.rstrip("/"),
            timeout=timeout_seconds,
        )
        self._retry_attempts = retry_attempts
        self._retry_base_seconds = retry_base_seconds
        self._retry_factor = retry_factor

    def put(self, data: bytes) -> str:
        response = self._request(
            "/api/v0/add",
            params={"cid-version": "1", "pin": "true", "quieter": "true"},
            files={"file": ("envelope.json", data, "application/json")},
        )
        try:
            payload: dict[str, Any] = response.json()
        except ValueError as exc:
            raise StorageUnavailable(
                f"IPFS add returned a non-JSON reply: {response.text[:200]!r}"
            ) from exc
        cid = payload.get("Hash") if isinstance(payload, dict) else None
        if not isinstance(cid, str) or not cid:
            raise StorageUnavailable(f"IPFS add returned no CID: {payload}")
        return cid

    def get(self, cid: str) -> bytes:
        response = self._request("/api/v0/cat", params={"arg": cid}, cid=cid)
        return response.content

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        path: str,
        *,
        params: dict[str, str],
        files: dict[str, tuple[str, bytes, str]] | None = None,
        cid: str | None = None,
    ) -> httpx.Response:
        retrying = Retrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._retry_base_seconds, exp_base=self._retry_factor)
            + wait_random(0, self._retry_base_seconds),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=False,
        )
        try:
            for attempt in retrying:
                with attempt:
                    response = self._client.post(path, params=params, files=files)
                    response.raise_for_status()
        except RetryError as exc:
            last = exc.last_attempt.exception()
            raise StorageUnavailable(
                f"IPFS {path} failed after {self._retry_attempts} attempts: {last}",
                partial={"cid": cid} if cid else None,
            ) from last
        except httpx.HTTPStatusError as exc:
            if cid is not None and _is_not_found(exc.response):
                raise ContentNotFound(f"CID {cid} not found in content store") from exc
            raise StorageUnavailable(
                f"IPFS {path} rejected the request: {exc.response.status_code} {exc.response.text}"
            ) from exc
        return response

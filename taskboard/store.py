# taskboard/store.py
"""
HTTP client for the sheet endpoint.

read   : GET  <api>?sheet=<name>&t=<millis>      -> JSON array of records | {"error": ...}
append : POST <api> form(sheet=<name>, data=<JSON array>) -> {"success": true} | {"error": ...}

Nothing raises past this module: every failure comes back as a Failure value.
"""
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Union

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import API_URL, HTTP_RETRIES, HTTP_TIMEOUT, SHEET_PASSWORD_UPDATES
from .errors import (
    EmptyResult, MalformedResponse, RejectedWrite, TaskboardError, TransportFailure,
)

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


@dataclass(frozen=True)
class Failure:
    error: str
    kind: str = TransportFailure.kind

    @classmethod
    def from_exc(cls, exc: TaskboardError) -> "Failure":
        return cls(exc.message or str(exc), exc.kind)


ReadResult = Union[List[Record], Failure]
WriteResult = Union[Dict[str, Any], Failure]


def is_failure(result) -> bool:
    """Failure value, or a raw payload carrying a truthy 'error'"""
    if isinstance(result, Failure):
        return True
    return isinstance(result, dict) and bool(result.get("error"))


def as_rows(result) -> List[Record]:
    """Normalise a read result for consumers: anything but a list of records -> []"""
    if not isinstance(result, list):
        return []
    return [r for r in result if isinstance(r, dict)]


def failure_message(result, default: str = "Unknown error occurred") -> str:
    if isinstance(result, Failure):
        return result.error or default
    if isinstance(result, dict) and result.get("error"):
        return str(result["error"])
    return default


def _is_success(payload) -> bool:
    if isinstance(payload, dict):
        return bool(payload.get("success")) or "Success" in str(payload.get("message") or "")
    if isinstance(payload, str):
        return "Success" in payload
    return False


def _error_message(payload) -> str:
    if isinstance(payload, dict):
        return str(payload.get("error") or payload.get("message") or "Unknown error occurred")
    return "Unknown error occurred"


class RemoteStoreClient:
    def __init__(
        self,
        api_url: str = API_URL,
        session: requests.Session = None,
        timeout: float = HTTP_TIMEOUT,
        retries: int = HTTP_RETRIES,
    ):
        self.api_url = api_url
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.retries = retries

    def read(self, sheet_name: str) -> ReadResult:
        params = {"sheet": sheet_name, "t": int(time.time() * 1000)}
        try:
            payload = self._request("GET", params=params, headers={"Accept": "application/json"})
        except TaskboardError as e:
            logger.warning("read %s failed: %s", sheet_name, e.message)
            return Failure.from_exc(e)

        if isinstance(payload, list):
            logger.debug("read %s: %d rows", sheet_name, len(payload))
            return payload
        if isinstance(payload, dict) and payload.get("error"):
            logger.warning("read %s returned error payload: %s", sheet_name, payload["error"])
            return Failure(str(payload["error"]), EmptyResult.kind)

        logger.warning("read %s: unexpected payload type %s", sheet_name, type(payload).__name__)
        return Failure(f"Unexpected response for {sheet_name}", MalformedResponse.kind)

    def append(self, sheet_name: str, row: Sequence) -> WriteResult:
        data = {"sheet": sheet_name, "data": json.dumps(list(row))}
        return self._write(f"append {sheet_name}", "POST", data=data)

    def update_password(self, username: str, new_password: str) -> WriteResult:
        return self.append(SHEET_PASSWORD_UPDATES, [username, new_password])

    def update_password_via_query(self, username: str, new_password: str) -> WriteResult:
        params = {"action": "updatePassword", "username": username, "newPassword": new_password}
        return self._write("updatePassword", "PUT", params=params)

    def _write(self, label: str, method: str, **kwargs) -> WriteResult:
        try:
            payload = self._request(method, **kwargs)
        except TaskboardError as e:
            logger.warning("%s failed: %s", label, e.message)
            return Failure.from_exc(e)

        if not _is_success(payload):
            message = _error_message(payload)
            logger.warning("%s rejected: %s", label, message)
            return Failure(message, RejectedWrite.kind)

        logger.info("%s ok", label)
        if isinstance(payload, dict):
            return payload
        return {"success": True, "message": payload}

    def _request(self, method: str, **kwargs):
        try:
            response = self._send(method, **kwargs)
        except requests.RequestException as e:
            raise TransportFailure(str(e)) from e

        if not response.ok:
            raise TransportFailure(f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"Invalid JSON response: {e}") from e

    def _send(self, method: str, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        if self.retries <= 0:
            return self.session.request(method, self.api_url, **kwargs)

        retrying = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=0.5, max=8),
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
            reraise=True,
        )
        return retrying(self.session.request, method, self.api_url, **kwargs)


_FAILURE_ERRORS = {
    cls.kind: cls for cls in (TransportFailure, MalformedResponse, EmptyResult, RejectedWrite)
}


def raise_for_failure(result, default: str = "Unknown error occurred") -> None:
    """Re-raise a Failure value as its TaskboardError class (for callers that propagate)"""
    if not is_failure(result):
        return
    kind = result.kind if isinstance(result, Failure) else EmptyResult.kind
    raise _FAILURE_ERRORS.get(kind, TaskboardError)(failure_message(result, default))

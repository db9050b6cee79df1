"""HTTP transport to one SCIM target.

``SCIMClient`` wraps ``requests`` with the SCIM headers, bearer auth and a
bounded retry loop, and exposes the handful of ``/Users`` operations the
reconciliation engine needs.

Key behaviors:
- Retry on connection errors, timeouts, 429 and 5xx with exponential backoff
  (0.25 s doubling, capped at 2 s per wait); other statuses return at once
- Exhausted network failures re-raise, as do other request errors
  (invalid URL or header) without retrying; exhausted bad statuses return the
  last response, so callers must inspect ``status_code``
- The high-level operations never raise: they log and report failure
- TLS options: skip verification, custom CA bundle
- Request headers are logged at debug level with credentials redacted
"""

import json
import re
import time
from typing import Any, Dict, Optional

import requests

from . import __version__
from .logging import get_logger
from .models import SyncTarget

SCIM_MEDIA_TYPE = "application/scim+json"

DEFAULT_TIMEOUT = 8.0
DEFAULT_MAX_RETRIES = 3

# Backoff between attempts, in seconds
_BACKOFF_INITIAL = 0.25
_BACKOFF_MAX = 2.0

# Longest response body excerpt written to logs
_LOG_BODY_LIMIT = 400

# Request errors worth another attempt; anything else is permanent
_TRANSIENT_ERRORS = (requests.ConnectionError, requests.Timeout)

_UUID_IN_BACKTICKS = re.compile(r"`([0-9a-fA-F-]{36})`")
_UUID = re.compile(r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b")


class SCIMResponse:
    """Normalized HTTP response wrapper."""

    def __init__(self, status_code: int, headers: Dict[str, str], body: str):
        self.status_code = status_code
        self.headers = headers
        self.body = body

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lower = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lower:
                return v
        return None


class UserLookup:
    """Typed view of a filtered ``/Users`` ListResponse.

    Attributes:
        total_results: The server's ``totalResults`` value.
        first_id:      ``id`` of the first resource, or None when there is none.
    """

    def __init__(self, total_results: int, first_id: Optional[str] = None):
        self.total_results = total_results
        self.first_id = first_id

    def __repr__(self):
        return f"UserLookup(total_results={self.total_results!r}, first_id={self.first_id!r})"


def parse_list_response(body: str) -> UserLookup:
    """Parse a ListResponse body into a ``UserLookup``.

    Raises ``ValueError`` for anything that is not a usable ListResponse:
    invalid JSON, a non-integer ``totalResults``, or a positive total
    without a string ``id`` on the first resource.
    """
    data = json.loads(body) if body else None
    if not isinstance(data, dict):
        raise ValueError("ListResponse is not a JSON object")

    total = data.get("totalResults", 0)
    if isinstance(total, bool) or not isinstance(total, int):
        raise ValueError(f"totalResults is not an integer: {total!r}")
    if total <= 0:
        return UserLookup(total)

    resources = data.get("Resources")
    if not isinstance(resources, list) or not resources:
        raise ValueError("totalResults > 0 but Resources is empty")
    first = resources[0]
    rid = first.get("id") if isinstance(first, dict) else None
    if not isinstance(rid, str) or not rid:
        raise ValueError("first resource has no id")
    return UserLookup(total, rid)


def extract_conflict_id(body: str) -> Optional[str]:
    """Best-effort recovery of the existing resource id from a 409 body.

    Servers differ: some return the id as a field, others mention it in
    ``detail`` (often between backticks).  Used for diagnostics only.
    """
    if not body:
        return None
    text = body
    try:
        data = json.loads(body)
    except ValueError:
        data = None
    if isinstance(data, dict):
        rid = data.get("id")
        if isinstance(rid, str) and rid:
            return rid
        detail = data.get("detail")
        text = detail if isinstance(detail, str) else ""

    m = _UUID_IN_BACKTICKS.search(text) or _UUID.search(text)
    if m is None:
        return None
    return m.group(1) if m.groups() else m.group(0)


def user_name_filter(user_name: str) -> str:
    """Build ``userName eq "<value>"`` with the value quoted as a SCIM string literal."""
    return f"userName eq {json.dumps(user_name, ensure_ascii=False)}"


def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code <= 599


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse an integer-seconds Retry-After header; None if missing or unparseable."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _excerpt(body: Optional[str]) -> str:
    if not body:
        return ""
    return body if len(body) <= _LOG_BODY_LIMIT else body[:_LOG_BODY_LIMIT] + " ..."


class SCIMClient:
    """HTTP client for one SCIM target.

    Stateless between calls apart from configuration; ``requests`` owns
    connection-level resources.

    Args:
        base_url:      Root URL of the SCIM endpoint (e.g. ``https://example.com/scim/v2``)
        token:         Bearer token for authentication
        timeout:       Per-attempt request timeout in seconds
        max_retries:   Additional attempts after the first on retryable failures
        tls_no_verify: Skip TLS certificate verification (for self-signed certs)
        ca_bundle:     Path to custom CA certificate bundle file
        target_name:   Name used to tag log records
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        tls_no_verify: bool = False,
        ca_bundle: Optional[str] = None,
        target_name: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.tls_no_verify = tls_no_verify
        self.ca_bundle = ca_bundle
        self.log = get_logger(__name__, subsystem="HTTP", target=target_name)

    @classmethod
    def for_target(cls, target: SyncTarget) -> "SCIMClient":
        return cls(
            target.base_url,
            target.token,
            timeout=target.timeout,
            max_retries=target.max_retries,
            tls_no_verify=target.tls_no_verify,
            ca_bundle=target.ca_bundle,
            target_name=target.name,
        )

    # -- SCIM operations -----------------------------------------------------

    def probe(self) -> bool:
        """GET /ServiceProviderConfig; True when the target answers 2xx."""
        try:
            resp = self.get("/ServiceProviderConfig")
        except requests.RequestException as exc:
            self.log.error("probe_failed", error=str(exc))
            return False
        if not resp.ok:
            self.log.error("probe_failed", status=resp.status_code, body=_excerpt(resp.body))
        return resp.ok

    def find_id_by_user_name(self, user_name: str) -> Optional[str]:
        """Return the SCIM id of the user with this exact userName, if any."""
        flt = user_name_filter(user_name)
        try:
            resp = self.get("/Users", params={"filter": flt})
        except requests.RequestException as exc:
            self.log.error("user_lookup_failed", user_name=user_name, error=str(exc))
            return None

        if not resp.ok:
            self.log.error("user_lookup_failed", user_name=user_name,
                           status=resp.status_code, body=_excerpt(resp.body))
            return None

        try:
            lookup = parse_list_response(resp.body)
        except ValueError as exc:
            self.log.error("user_lookup_unparseable", user_name=user_name,
                           error=str(exc), body=_excerpt(resp.body))
            return None

        self.log.info("user_lookup", user_name=user_name, status=resp.status_code,
                      total_results=lookup.total_results)
        return lookup.first_id

    def create_user(self, payload: Dict[str, Any]) -> bool:
        """POST /Users; True on 200/201.

        A 409 is reported as failure so the caller can re-resolve and PATCH.
        """
        try:
            resp = self.post("/Users", payload)
        except requests.RequestException as exc:
            self.log.error("user_create_failed", error=str(exc))
            return False

        if resp.status_code in (200, 201):
            return True
        if resp.status_code == 409:
            existing = extract_conflict_id(resp.body)
            self.log.info("user_create_conflict", existing_id=existing or "(not parsed)")
        else:
            self.log.error("user_create_failed", status=resp.status_code, body=_excerpt(resp.body))
        return False

    def patch_user(self, user_id: str, payload: Dict[str, Any]) -> bool:
        """PATCH /Users/{id} with a PatchOp; True on 200/204."""
        path = f"/Users/{user_id}"
        try:
            resp = self.patch(path, payload)
        except requests.RequestException as exc:
            self.log.error("user_patch_failed", id=user_id, error=str(exc))
            return False
        if resp.status_code in (200, 204):
            return True
        self.log.error("user_patch_failed", id=user_id, status=resp.status_code, body=_excerpt(resp.body))
        return False

    def delete_user(self, user_id: str) -> bool:
        """DELETE /Users/{id}; 404 counts as success."""
        path = f"/Users/{user_id}"
        try:
            resp = self.delete(path)
        except requests.RequestException as exc:
            self.log.error("user_delete_failed", id=user_id, error=str(exc))
            return False
        if resp.status_code in (200, 204, 404):
            return True
        self.log.error("user_delete_failed", id=user_id, status=resp.status_code, body=_excerpt(resp.body))
        return False

    # -- Verbs ---------------------------------------------------------------

    def get(self, path: str, params: Optional[Dict[str, str]] = None) -> SCIMResponse:
        """Send a GET request to the SCIM endpoint."""
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: Dict[str, Any]) -> SCIMResponse:
        """Send a POST request with a JSON payload."""
        return self._request("POST", path, payload)

    def patch(self, path: str, payload: Dict[str, Any]) -> SCIMResponse:
        """Send a PATCH request with a JSON payload."""
        return self._request("PATCH", path, payload)

    def delete(self, path: str) -> SCIMResponse:
        """Send a DELETE request."""
        return self._request("DELETE", path)

    # -- Internals -----------------------------------------------------------

    def _build_headers(self) -> Dict[str, str]:
        """Build the default SCIM request headers with auth credentials."""
        return {
            "Accept": SCIM_MEDIA_TYPE,
            "Content-Type": SCIM_MEDIA_TYPE,
            "Authorization": f"Bearer {self.token}",
            "User-Agent": f"scim-outbound/{__version__}",
        }

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> SCIMResponse:
        """Execute an HTTP request, retrying transient failures.

        Makes at most ``1 + max_retries`` attempts.  A 429 ``Retry-After``
        longer than the current backoff is honoured, within the same cap.
        """
        url = f"{self.base_url}{path}"
        headers = self._build_headers()
        wait = _BACKOFF_INITIAL
        attempt = 0
        self.log.debug("request", method=method, url=url, headers=redact_auth(headers))

        while True:
            attempt += 1
            try:
                resp = self._send(method, url, headers, payload, params)
            except _TRANSIENT_ERRORS as exc:
                if attempt > self.max_retries:
                    raise
                self.log.warning("request_retry", method=method, path=path,
                                 attempt=attempt, error=str(exc))
                time.sleep(wait)
                wait = min(wait * 2, _BACKOFF_MAX)
                continue

            if not _is_retryable(resp.status_code) or attempt > self.max_retries:
                return resp

            delay = wait
            if resp.status_code == 429:
                retry_after = _parse_retry_after(resp.header("Retry-After"))
                if retry_after is not None:
                    delay = min(max(wait, retry_after), _BACKOFF_MAX)
            self.log.warning("request_retry", method=method, path=path,
                             attempt=attempt, status=resp.status_code)
            time.sleep(delay)
            wait = min(wait * 2, _BACKOFF_MAX)

    def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        payload: Optional[Dict[str, Any]],
        params: Optional[Dict[str, str]],
    ) -> SCIMResponse:
        """Execute one attempt using the ``requests`` library."""
        kwargs: Dict[str, Any] = {
            "headers": headers,
            "timeout": self.timeout,
        }
        if self.ca_bundle:
            kwargs["verify"] = self.ca_bundle
        elif self.tls_no_verify:
            kwargs["verify"] = False
        else:
            kwargs["verify"] = True

        if params:
            kwargs["params"] = params
        if payload is not None:
            kwargs["json"] = payload

        resp = requests.request(method, url, **kwargs)
        return SCIMResponse(resp.status_code, dict(resp.headers), resp.text)


def redact_auth(headers: Dict[str, str]) -> Dict[str, str]:
    """Return a copy of headers with Authorization values replaced by ``***REDACTED***``.

    Use this when including headers in logs or error messages to avoid
    leaking bearer tokens.
    """
    redacted = dict(headers)
    for key in list(redacted.keys()):
        if key.lower() == "authorization":
            redacted[key] = "***REDACTED***"
    return redacted

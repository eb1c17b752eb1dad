#!/usr/bin/env python3
"""
Automation Controller REST client for the workshop scripts.

Wraps a requests.Session pointed at <AAP_URL>/api/controller/v2/ and
provides the create-if-missing helper used for every workshop resource.
Authentication is a bearer token when AAP_TOKEN is set, HTTP basic auth
with AAP_USERNAME/AAP_PASSWORD otherwise.
"""
from typing import Any, Dict, List, Optional, Tuple

import requests
import urllib3

# Disable SSL warnings for lab environment
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

API_PREFIX = "/api/controller/v2"
CONNECT_TIMEOUT = 10


def make_session(token: str = "", username: str = "", password: str = "") -> requests.Session:
    session = requests.Session()
    if token:
        session.headers.update({"Authorization": f"Bearer {token}"})
    else:
        session.auth = (username, password)
    session.headers.update({"Content-Type": "application/json"})
    return session


class AAPClient:
    """Thin client over the /api/controller/v2/ REST API."""

    def __init__(self, host: str, session: requests.Session):
        self.host = host.rstrip("/")
        self.api_base = f"{self.host}{API_PREFIX}"
        self.session = session

    @classmethod
    def from_env(cls, env: Dict[str, str]) -> "AAPClient":
        session = make_session(
            token=env.get("AAP_TOKEN", ""),
            username=env.get("AAP_USERNAME", ""),
            password=env.get("AAP_PASSWORD", ""),
        )
        return cls(env.get("AAP_URL", ""), session)

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    def _url(self, endpoint: str) -> str:
        return f"{self.api_base}/{endpoint.lstrip('/')}"

    def _send(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Issue a request and raise HTTPError on 4xx/5xx.

        Field validation errors come back as 400 with a JSON body naming the
        offending fields; that body is echoed before raising.
        """
        resp = self.session.request(method, self._url(endpoint), verify=False, **kwargs)
        if resp.status_code == 400:
            print(f"         400 response: {resp.text}")
        resp.raise_for_status()
        return resp

    def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        return self._send("GET", endpoint, params=params).json()

    def get_all(self, endpoint: str, params: Optional[dict] = None) -> List[dict]:
        """Fetch all pages from a paginated API endpoint."""
        results = []
        url = self._url(endpoint)
        while url:
            resp = self.session.get(url, params=params, verify=False)
            resp.raise_for_status()
            data = resp.json()
            results.extend(data.get("results", []))
            url = data.get("next")
            if url and not url.startswith("http"):
                url = f"{self.host}{url}"
            params = None  # next URL already includes params
        return results

    def post(self, endpoint: str, payload: dict) -> dict:
        return self._send("POST", endpoint, json=payload).json()

    def post_no_body(self, endpoint: str, payload: dict) -> Optional[dict]:
        """POST to endpoints that answer 204 No Content."""
        resp = self._send("POST", endpoint, json=payload)
        return resp.json() if resp.content and resp.status_code != 204 else None

    def delete(self, endpoint: str) -> bool:
        """False when the object was already gone."""
        try:
            self._send("DELETE", endpoint)
        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                return False
            raise
        return True

    def ping(self, timeout: int = CONNECT_TIMEOUT) -> bool:
        """Return True when the controller answers its ping endpoint."""
        try:
            resp = self.session.get(self._url("ping/"), verify=False, timeout=timeout)
            return resp.ok
        except requests.exceptions.RequestException:
            return False

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_name(self, endpoint: str, name: str) -> Optional[dict]:
        """Look up an existing object by name."""
        data = self.get(endpoint, params={"name": name})
        if not data.get("count", len(data.get("results", []))):
            return None
        results = data.get("results", [])
        return results[0] if results else None

    def resolve_id(self, endpoint: str, name: str) -> int:
        existing = self.find_by_name(endpoint, name)
        if not existing:
            raise LookupError(f"{endpoint.rstrip('/')} '{name}' not found")
        return existing["id"]

    def ensure(self, endpoint: str, name: str, payload: Dict[str, Any]) -> Tuple[dict, bool]:
        """Create if missing, otherwise return existing object.

        Returns the object and whether it was created by this call.
        """
        existing = self.find_by_name(endpoint, name)
        if existing:
            print(f"         (already exists, id={existing['id']})")
            return existing, False
        created = self.post(endpoint, payload)
        if "id" not in created:
            raise ValueError(f"Create response for '{name}' has no id: {created}")
        print(f"         (created, id={created['id']})")
        return created, True

    def associate(self, endpoint: str, obj_id: int) -> bool:
        """Link obj_id through a sub-list endpoint; False if already linked."""
        try:
            self.post_no_body(endpoint, {"id": obj_id})
            return True
        except requests.exceptions.HTTPError:
            return False

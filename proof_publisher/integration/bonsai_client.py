"""
Bonsai proving service REST client.

Only the calls the publisher needs: image/input upload, session and SNARK
creation, and status polling. Blobs are uploaded to the pre-signed URLs the
service hands out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.bonsai.xyz/"
DEFAULT_RISC0_VERSION = "0.21.0"


class BonsaiError(RuntimeError):
    """Raised on any failed service call; ``status_code`` is None for transport errors."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


@dataclass(frozen=True)
class BonsaiConfig:
    api_url: str = DEFAULT_API_URL
    api_key: str = ""
    risc0_version: str = DEFAULT_RISC0_VERSION
    timeout_s: float = 30.0

    def __repr__(self) -> str:
        return (
            f"BonsaiConfig(api_url={self.api_url!r}, api_key='***', "
            f"risc0_version={self.risc0_version!r}, timeout_s={self.timeout_s!r})"
        )


class BonsaiClient:
    def __init__(self, config: BonsaiConfig, *, session: Optional[requests.Session] = None) -> None:
        if not config.api_url:
            raise ValueError("api_url must be non-empty")
        if not config.api_key:
            raise ValueError("api_key must be non-empty")
        if not isinstance(config.timeout_s, (int, float)) or config.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._cfg = config
        self._base = config.api_url.rstrip("/")
        self._http = session if session is not None else requests.Session()
        self._http.headers.update({"x-api-key": config.api_key, "x-risc0-version": config.risc0_version})

    def _request(self, method: str, path: str, *, json_body: Optional[Mapping[str, Any]] = None) -> requests.Response:
        url = f"{self._base}/{path.lstrip('/')}"
        try:
            resp = self._http.request(method, url, json=json_body, timeout=self._cfg.timeout_s)
        except requests.RequestException as exc:
            raise BonsaiError(f"{method} {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise BonsaiError(
                f"{method} {path} returned HTTP {resp.status_code}: {resp.text[:512]}",
                status_code=resp.status_code,
            )
        return resp

    def _json(self, resp: requests.Response, *, what: str) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError as exc:
            raise BonsaiError(f"{what}: response is not JSON") from exc
        if not isinstance(body, dict):
            raise BonsaiError(f"{what}: response is not an object")
        return body

    def _put_blob(self, url: str, data: bytes) -> None:
        try:
            resp = self._http.put(url, data=data, timeout=self._cfg.timeout_s)
        except requests.RequestException as exc:
            raise BonsaiError(f"blob upload failed: {exc}") from exc
        if resp.status_code >= 400:
            raise BonsaiError(f"blob upload returned HTTP {resp.status_code}", status_code=resp.status_code)

    def upload_img(self, image_id: str, elf: bytes) -> bool:
        """Upload a guest image. Returns True if the service already had it."""
        img = image_id[2:] if image_id.lower().startswith("0x") else image_id
        resp = self._request("GET", f"images/upload/{img}")
        if resp.status_code == 204:
            return True
        url = self._json(resp, what="images/upload").get("url")
        if not isinstance(url, str) or not url:
            raise BonsaiError("images/upload: missing url")
        self._put_blob(url, elf)
        return False

    def upload_input(self, data: bytes) -> str:
        body = self._json(self._request("GET", "inputs/upload"), what="inputs/upload")
        url, uuid = body.get("url"), body.get("uuid")
        if not isinstance(url, str) or not isinstance(uuid, str):
            raise BonsaiError("inputs/upload: missing url/uuid")
        self._put_blob(url, data)
        return uuid

    def create_session(self, image_id: str, input_id: str) -> str:
        img = image_id[2:] if image_id.lower().startswith("0x") else image_id
        body = self._json(
            self._request("POST", "sessions/create", json_body={"img": img, "input": input_id, "assumptions": []}),
            what="sessions/create",
        )
        uuid = body.get("uuid")
        if not isinstance(uuid, str):
            raise BonsaiError("sessions/create: missing uuid")
        return uuid

    def session_status(self, session_id: str) -> Dict[str, Any]:
        return self._json(self._request("GET", f"sessions/status/{session_id}"), what="sessions/status")

    def create_snark(self, session_id: str) -> str:
        body = self._json(
            self._request("POST", "snark/create", json_body={"session_id": session_id}),
            what="snark/create",
        )
        uuid = body.get("uuid")
        if not isinstance(uuid, str):
            raise BonsaiError("snark/create: missing uuid")
        return uuid

    def snark_status(self, snark_id: str) -> Dict[str, Any]:
        return self._json(self._request("GET", f"snark/status/{snark_id}"), what="snark/status")

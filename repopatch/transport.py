"""
HTTP client for the remote file service.

Endpoints handled here:
  GET  <base>/api/connect
  GET  <base>/api/directory?path=<p>
  POST <base>/api/files            {paths: [...]}
  POST <base>/api/apply_patch      {directoryPath, patchContent}
  POST <base>/api/check_writable   {directoryPath}

Absolute https:// URLs fall back to http:// once when the first attempt
fails or answers with a non-2xx status. Root-rooted URLs ("/...") resolve
against the configured origin and are never retried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .errors import ServiceError, TransportError
from .models.tree import Tree
from .utils.tree import tree_from_json

log = logging.getLogger(__name__)

DEFAULT_ORIGIN = "http://127.0.0.1:3000"
DEFAULT_HEADERS = {"ngrok-skip-browser-warning": "true"}


def normalize_endpoint(endpoint_input: Optional[str]) -> str:
    """Empty means the relative root; bare hosts get https:// prepended."""
    endpoint = (endpoint_input or "").strip() or "/"
    if not endpoint.startswith(("http://", "https://", "/")):
        endpoint = f"https://{endpoint}"
    return endpoint


def api_url(endpoint: str, route: str) -> str:
    return endpoint.rstrip("/") + route


@dataclass
class ConnectResult:
    success: bool
    endpoint: str
    error: Optional[str] = None


@dataclass
class DirectoryListing:
    root: str
    tree: Tree = field(default_factory=dict)


@dataclass
class FileResult:
    success: bool
    content: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Parsed /api/files payload. `files` is keyed by absolute path."""

    success: bool
    files: Dict[str, FileResult] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class ServiceReply:
    """Raw HTTP status plus decoded JSON body (None when the body was not JSON)."""

    status: int
    data: Optional[Dict[str, Any]]
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class RemoteClient:
    def __init__(
        self,
        endpoint: str = "/",
        *,
        origin: str = DEFAULT_ORIGIN,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint or "/"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.origin = origin.rstrip("/")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RemoteClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # ----- transport -----

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request, applying the https -> http fallback for absolute URLs.

        Raises:
            TransportError: if no attempt produced a response.
        """
        headers = {**DEFAULT_HEADERS, **kwargs.pop("headers", {})}
        if url.startswith("/"):
            log.debug("Fetching relative URL: %s", url)
            try:
                return await self._client.request(method, self.origin + url, headers=headers, **kwargs)
            except httpx.HTTPError as e:
                raise TransportError(str(e) or type(e).__name__) from e

        first_error: Optional[str] = None
        try:
            log.debug("Trying %s", url)
            response = await self._client.request(method, url, headers=headers, **kwargs)
            if response.is_success or not url.startswith("https://"):
                return response
            first_error = f"status {response.status_code}"
        except httpx.HTTPError as e:
            if not url.startswith("https://"):
                raise TransportError(str(e) or type(e).__name__) from e
            first_error = str(e) or type(e).__name__

        http_url = "http://" + url[len("https://"):]
        log.info("HTTPS attempt failed (%s); falling back to %s", first_error, http_url)
        try:
            return await self._client.request(method, http_url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e

    async def _reply(self, method: str, route: str, **kwargs: Any) -> ServiceReply:
        response = await self.request(method, api_url(self.endpoint, route), **kwargs)
        try:
            data = response.json()
        except ValueError:
            data = None
        if data is not None and not isinstance(data, dict):
            data = None
        return ServiceReply(status=response.status_code, data=data, text=response.text)

    # ----- endpoints -----

    async def connect(self, endpoint_input: Optional[str] = None) -> ConnectResult:
        """
        Probe <endpoint>/api/connect. On success `self.endpoint` is updated, using the
        http:// form if the https:// endpoint only answered after fallback.
        """
        endpoint = normalize_endpoint(endpoint_input if endpoint_input is not None else self.endpoint)
        url = api_url(endpoint, "/api/connect")
        log.info("Attempting to connect to: %s", url)
        try:
            response = await self.request("GET", url)
        except TransportError as e:
            return ConnectResult(False, endpoint, f"Connection error: {e}")

        if not response.is_success:
            return ConnectResult(
                False, endpoint,
                f"Server responded with status {response.status_code}: {response.text[:50]}...",
            )
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return ConnectResult(
                False, endpoint,
                f"Unexpected content type '{content_type}': {response.text[:50]}...",
            )
        try:
            data = response.json()
        except ValueError as e:
            return ConnectResult(False, endpoint, f"Invalid JSON from server: {e}")
        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            return ConnectResult(False, endpoint, f"Failed: {error or 'unknown error'}")

        final_url = str(response.url)
        if endpoint.startswith("https://") and final_url.startswith("http://"):
            endpoint = final_url.split("/api/connect")[0]
        self.endpoint = endpoint
        log.info("Successfully connected to %s", endpoint)
        return ConnectResult(True, endpoint)

    async def fetch_directory(self, path: str) -> DirectoryListing:
        """
        Fetch the directory tree rooted at `path`.

        Raises:
            ServiceError: the service refused (message already user-facing).
            TransportError: the request could not be made.
        """
        reply = await self._reply("GET", "/api/directory", params={"path": path})
        data = reply.data or {}
        if reply.ok and data.get("success"):
            root = data.get("root") or path
            return DirectoryListing(root=root, tree=tree_from_json(data.get("tree")))

        message = str(data.get("error") or f"Server responded with status {reply.status}")
        if "permission denied" in message.lower():
            message = (
                f"Permission denied: The server cannot access {path}. "
                "Ensure the server has read permissions."
            )
        elif reply.status == 404:
            message = f"Directory not found: {path}"
        raise ServiceError(message, reply.status)

    async def fetch_files(self, paths: List[str]) -> BatchResult:
        """
        Batch-fetch file contents by absolute path.

        Raises:
            TransportError: network failure, non-2xx status, or a non-JSON body.
        """
        reply = await self._reply("POST", "/api/files", json={"paths": list(paths)})
        if not reply.ok:
            raise ServiceError(f"Server error: {reply.status} - {reply.text[:100]}", reply.status)
        if reply.data is None:
            raise TransportError("Server returned a non-JSON response for /api/files")

        data = reply.data
        files: Dict[str, FileResult] = {}
        raw_files = data.get("files")
        if isinstance(raw_files, dict):
            for abs_path, raw in raw_files.items():
                if not isinstance(raw, dict):
                    continue
                files[abs_path] = FileResult(
                    success=bool(raw.get("success")),
                    content=raw.get("content"),
                    error=raw.get("error"),
                )
        success = bool(data.get("success")) and isinstance(raw_files, dict)
        error = data.get("error") or (None if success else "Batch fetch failed with unknown server error")
        return BatchResult(success=success, files=files, error=error)

    async def apply_patch(self, directory_path: str, patch_content: str) -> ServiceReply:
        return await self._reply(
            "POST", "/api/apply_patch",
            json={"directoryPath": directory_path, "patchContent": patch_content},
        )

    async def check_writable(self, directory_path: str) -> ConnectResult:
        """Ask the service whether it can write into `directory_path`."""
        try:
            reply = await self._reply("POST", "/api/check_writable", json={"directoryPath": directory_path})
        except TransportError as e:
            return ConnectResult(False, self.endpoint, f"Network/Request error: {e}")
        data = reply.data or {}
        if reply.ok and data.get("success"):
            return ConnectResult(True, self.endpoint)
        return ConnectResult(False, self.endpoint, data.get("error") or f"Server responded with status {reply.status}")

"""
Python client for the torrent-bridge REST API.

Usage:
    from torrent_bridge.client import TorrentBridgeClient

    client = TorrentBridgeClient("http://localhost:9091", auth=("user", "pass"))
    for torrent in client.list_torrents()["torrents"]:
        print(torrent["name"], torrent["progress"])
"""

from typing import Any, Dict, Optional, Tuple
from urllib.parse import urljoin

import requests

from .exceptions import TorrentBridgeError


class ClientError(TorrentBridgeError):
    """The API could not be reached or returned an error."""


class TorrentBridgeClient:
    def __init__(
        self,
        base_url: str = "http://localhost:9091",
        auth: Optional[Tuple[str, str]] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        if auth:
            self.session.auth = auth

    def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        url = urljoin(self.base_url + "/", endpoint.lstrip("/"))
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
            response.raise_for_status()
            if response.content:
                return response.json()
            return {}
        except requests.exceptions.HTTPError as e:
            detail = str(e)
            if e.response is not None and e.response.content:
                try:
                    detail = e.response.json().get("detail", detail)
                except ValueError:
                    detail = e.response.text or detail
            raise ClientError(f"API Error: {detail}") from e
        except requests.exceptions.ConnectionError as e:
            raise ClientError(f"Could not connect to server at {self.base_url}") from e

    def ping(self) -> Dict[str, Any]:
        return self._request("GET", "/api/ping")

    # -------------------------------------------------------------------------
    # Torrent Methods
    # -------------------------------------------------------------------------

    def list_torrents(self) -> Dict[str, Any]:
        """Return {"phase": ..., "torrents": [...]}."""
        return self._request("GET", "/api/torrents")

    def add_torrent(
        self,
        magnet: str,
        save_path: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {"magnet": magnet}
        if save_path:
            data["save_path"] = save_path
        if category:
            data["category"] = category
        return self._request("POST", "/api/torrents", json=data)

    def pause_torrent(self, key: str) -> Dict[str, Any]:
        return self._request("POST", f"/api/torrents/{key}/pause")

    def resume_torrent(self, key: str) -> Dict[str, Any]:
        return self._request("POST", f"/api/torrents/{key}/resume")

    def remove_torrent(self, key: str, delete_files: bool = False) -> Dict[str, Any]:
        return self._request(
            "DELETE",
            f"/api/torrents/{key}",
            params={"delete_files": str(delete_files).lower()},
        )

    def set_category(self, key: str, category: Optional[str]) -> Dict[str, Any]:
        return self._request("PUT", f"/api/torrents/{key}/category", json={"category": category})

    def unmark_cleaned(self, key: str) -> Dict[str, Any]:
        """Let the completion action run again for a torrent."""
        return self._request("DELETE", f"/api/cleaned/{key}")

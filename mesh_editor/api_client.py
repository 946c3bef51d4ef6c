"""HTTP helper shared by the MCP server and the CLI."""

import logging
import os
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

# Backend API URL
API_BASE = os.getenv("MESH_EDITOR_API_BASE", "http://127.0.0.1:8765/api")


class ApiError(Exception):
    """The backend answered with an error status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def api_request(
    method: str,
    endpoint: str,
    json: Optional[Any] = None,
    params: Optional[dict] = None,
    api_base: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> dict:
    """Make a request to the mesh editor backend."""
    url = f"{api_base or API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0, transport=transport) as client:
        try:
            if method == "GET":
                response = client.get(url, params=params)
            elif method == "POST":
                response = client.post(url, json=json, params=params)
            elif method == "PUT":
                response = client.put(url, json=json)
            elif method == "PATCH":
                response = client.patch(url, json=json)
            elif method == "DELETE":
                response = client.delete(url)
            else:
                raise ValueError(f"Unknown method: {method}")
        except httpx.TransportError as e:
            raise ApiError(f"Connection failed: {e}. Is the mesh editor backend running?") from e

        if response.status_code >= 400:
            try:
                error = response.json().get("detail", "Unknown error")
            except ValueError:
                error = response.text or "Unknown error"
            logger.debug("%s %s -> %d", method, endpoint, response.status_code)
            raise ApiError(f"API error: {error}", status_code=response.status_code)

        return response.json()

"""
Thin async HTTP client for the REST backend
"""
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from claimdesk.core.config import Settings, get_settings
from claimdesk.core.exceptions import ApiError, TransportError
from claimdesk.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

FilePart = Tuple[str, Tuple[str, bytes, str]]


class HttpClient:
    """
    Client for interacting with the REST API

    Every call returns the parsed JSON body, or {} for 204/empty responses.
    Non-2xx responses raise ApiError, network failures raise TransportError.
    No caching and no retry.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.api_base_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying httpx client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.settings.request_timeout_seconds,
                limits=httpx.Limits(
                    max_keepalive_connections=self.settings.max_concurrent_requests,
                    max_connections=self.settings.max_concurrent_requests,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Sequence[FilePart]] = None,
    ) -> Any:
        """
        Perform a request and parse the response

        Args:
            method: HTTP method
            endpoint: Path relative to the base URL
            params: Query-string parameters; None values are dropped
            data: Form fields; list values are sent as repeated fields
            files: Multipart file parts as (field, (filename, content, content_type))

        Returns:
            Parsed JSON body, {} when the response is empty
        """
        client = self._get_client()
        params = _clean(params)
        data = _clean(data)

        kwargs: Dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        if data:
            kwargs["data"] = data
        if files:
            kwargs["files"] = list(files)

        logger.debug(f"{method} {endpoint}", extra={"params": params})
        try:
            response = await client.request(method, endpoint, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise TransportError(f"Network error calling {endpoint}: {e}", original=e) from e

        if response.is_error:
            raise ApiError(
                response.status_code,
                f"HTTP {response.status_code}: {response.reason_phrase}",
                _parse_error_body(response),
            )

        if _is_empty(response):
            return {}

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise ApiError(
                response.status_code,
                f"Invalid JSON in response from {endpoint}",
            ) from e

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, **kwargs) -> Any:
        return await self.request("POST", endpoint, **kwargs)

    async def patch(self, endpoint: str, **kwargs) -> Any:
        return await self.request("PATCH", endpoint, **kwargs)

    async def delete(self, endpoint: str) -> Any:
        return await self.request("DELETE", endpoint)


def _clean(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop None values and empty lists"""
    if not values:
        return {}
    cleaned = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = [str(v) for v in value]
        elif isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = value
    return cleaned


def _is_empty(response: httpx.Response) -> bool:
    if response.status_code == 204:
        return True
    if response.headers.get("content-length") == "0":
        return True
    return not response.content.strip()


def _parse_error_body(response: httpx.Response) -> Optional[Any]:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def encode_files(field: str, uploads: List[Any]) -> List[FilePart]:
    """Build multipart parts for a list of FileUpload"""
    return [(field, upload.as_part()) for upload in uploads]

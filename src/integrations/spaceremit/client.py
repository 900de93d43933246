"""
SpaceRemit Gateway Client

Sends authenticated JSON requests to the SpaceRemit payment API.
Handles timeouts, retry with exponential backoff, and error capture.
"""

import asyncio
import json
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from src.config.constants import RESPONSE_PREFIX_LENGTH
from src.integrations.spaceremit.exceptions import (
    SpaceRemitConfigurationError,
    SpaceRemitError,
    SpaceRemitRemoteError,
    SpaceRemitTransportError,
)
from src.integrations.spaceremit.models import (
    ConnectionTestResult,
    GatewayConfig,
    KeysInfo,
)
from src.shared.error_handler import ErrorHandler
from src.shared.utils import mask_secret

CLIENT_VERSION = "1.0.0"

# Transport failures worth another attempt: timeouts of any phase and
# refused/unreachable connections.
RETRYABLE_TRANSPORT_ERRORS = (httpx.TimeoutException, httpx.ConnectError)


class SpaceRemitClient:
    """
    SpaceRemit API client

    Provides methods to:
    - Send signed requests with retry on transient failures
    - Test the configured credentials
    - Report which keys are configured
    """

    def __init__(
        self,
        config: GatewayConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._error_handler = ErrorHandler(__name__)
        self.config = config
        self._transport = transport
        self._sleep = sleep

        self._error_handler.logger.debug(
            "SpaceRemit client initialized",
            extra={
                "test_mode": config.test_mode,
                "has_server_key": bool(config.server_key),
                "has_public_key": bool(config.public_key),
            },
        )

    def _headers(self, request_id: str) -> Dict[str, str]:
        return {
            "authorization": self.config.server_key,
            "Content-Type": "application/json",
            "User-Agent": f"SpaceRemit-Python/{CLIENT_VERSION}-{self.config.mode}",
            "X-Request-ID": request_id,
            "X-Test-Mode": "1" if self.config.test_mode else "0",
        }

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.config.timeout, connect=self.config.connect_timeout
            ),
            verify=True,
            follow_redirects=True,
            max_redirects=10,
            transport=self._transport,
        )

    async def send(self, payload: Dict[str, Any], method: str = "POST") -> Dict[str, Any]:
        """
        Send a request to the SpaceRemit API

        Args:
            payload: Request body fields (credentials are added here)
            method: HTTP method, POST unless the endpoint says otherwise

        Returns:
            Dict[str, Any]: Decoded JSON body of a 200 response

        Raises:
            SpaceRemitConfigurationError: If no secret key is set for the mode
            SpaceRemitTransportError: If the request failed before a response
            SpaceRemitRemoteError: On non-200 status or malformed JSON
        """
        if not self.config.server_key:
            raise SpaceRemitConfigurationError(
                f"Server key is not configured for {self.config.mode} mode."
            )

        request_id = str(uuid.uuid4())
        body = dict(payload)
        body["private_key"] = self.config.server_key
        if self.config.test_mode:
            body["test_mode"] = True
        body["request_id"] = request_id

        headers = self._headers(request_id)
        retry_count = 0

        while True:
            try:
                return await self._attempt(method, body, headers, request_id, retry_count)
            except (SpaceRemitTransportError, SpaceRemitRemoteError) as e:
                if not e.retryable or retry_count >= self.config.max_retries:
                    raise
                delay = 2**retry_count
                self._error_handler.logger.warning(
                    f"SpaceRemit request failed, retrying in {delay}s: {e.message}",
                    extra={"request_id": request_id, "retry_count": retry_count},
                )
                await self._sleep(delay)
                retry_count += 1

    async def _attempt(
        self,
        method: str,
        body: Dict[str, Any],
        headers: Dict[str, str],
        request_id: str,
        retry_count: int,
    ) -> Dict[str, Any]:
        log_context = {
            "request_id": request_id,
            "attempt": retry_count + 1,
            "retry_count": retry_count,
            "test_mode": self.config.test_mode,
        }

        try:
            async with self._http_client() as client:
                response = await client.request(
                    method,
                    self.config.api_url,
                    content=json.dumps(body, default=str),
                    headers=headers,
                )
        except httpx.RequestError as e:
            retryable = isinstance(e, RETRYABLE_TRANSPORT_ERRORS)
            self._error_handler.logger.error(
                f"SpaceRemit transport error: {type(e).__name__}: {e}",
                extra={**log_context, "outcome": "transport_error", "retryable": retryable},
            )
            raise SpaceRemitTransportError(
                f"Transport error: {type(e).__name__}: {e}", e, retryable=retryable
            )

        prefix = response.content[:RESPONSE_PREFIX_LENGTH].decode("utf-8", "replace")

        if response.status_code != 200:
            self._error_handler.logger.error(
                f"SpaceRemit HTTP error {response.status_code}",
                extra={
                    **log_context,
                    "status_code": response.status_code,
                    "outcome": "http_error",
                },
            )
            raise SpaceRemitRemoteError(
                f"HTTP Error {response.status_code}: {prefix}",
                status_code=response.status_code,
                response_prefix=prefix,
            )

        try:
            decoded = response.json()
        except ValueError:
            decoded = None

        if not isinstance(decoded, dict):
            self._error_handler.logger.error(
                "SpaceRemit response is not a JSON object",
                extra={**log_context, "status_code": 200, "outcome": "malformed_json"},
            )
            raise SpaceRemitRemoteError(
                f"Failed to decode response JSON. Response: {prefix}",
                status_code=200,
                response_prefix=prefix,
            )

        self._error_handler.logger.debug(
            "SpaceRemit request successful",
            extra={
                **log_context,
                "status_code": 200,
                "outcome": "success",
                "response_status": decoded.get("response_status", "unknown"),
            },
        )
        return decoded

    async def test_connection(self) -> ConnectionTestResult:
        """Send a no-op request to confirm the configured keys are accepted."""
        self._error_handler.logger.info(
            f"Testing SpaceRemit connection ({self.config.mode} mode)"
        )
        try:
            await self.send({"test_connection": True, "timestamp": int(time.time())})
        except SpaceRemitError as e:
            self._error_handler.logger.error(
                f"SpaceRemit connection test failed ({self.config.mode} mode): {e.message}"
            )
            return ConnectionTestResult(
                success=False,
                mode=self.config.mode,
                message=f"Connection failed ({self.config.mode} mode): {e.message}",
            )

        return ConnectionTestResult(
            success=True,
            mode=self.config.mode,
            message=f"Connection successful ({self.config.mode} mode)",
        )

    def keys_info(self) -> KeysInfo:
        return KeysInfo(
            test_mode=self.config.test_mode,
            server_key_set=bool(self.config.server_key),
            public_key_set=bool(self.config.public_key),
            server_key_prefix=mask_secret(self.config.server_key),
            public_key_prefix=mask_secret(self.config.public_key),
        )

"""SAP Business One Service Layer HTTP Client.

Low-level HTTP client for Service Layer calls.
Handles the session cookie login, error bodies, and retries of reads.
"""

from typing import Any, Dict, Optional, Tuple
from dataclasses import dataclass, field
import json
import re
import asyncio
import logging

from connectors.erp_base import DocumentStoreError

logger = logging.getLogger(__name__)


class SLApiError(DocumentStoreError):
    """Base exception for Service Layer errors.

    `message` is the diagnostic text from the Service Layer error body when
    there is one, otherwise a transport description.
    """
    def __init__(self, message: str, status_code: int = 0, response_body: str = "", error_code: int = -1):
        super().__init__(message, error_code)
        self.status_code = status_code
        self.response_body = response_body


class SLAuthenticationError(SLApiError):
    """Login rejected or session expired (401/403)."""
    pass


class SLNotFoundError(SLApiError):
    """Entity not found (404)."""
    pass


class SLValidationError(SLApiError):
    """Document rejected by business validation (400)."""
    pass


@dataclass
class RetryConfig:
    """Configuration for retry behavior. Only idempotent methods are retried."""
    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (500, 502, 503, 504)
    retry_methods: Tuple[str, ...] = ("GET",)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


@dataclass
class SLApiConfig:
    """Configuration for the Service Layer client."""
    base_url: str = "https://localhost:50000/b1s/v1"
    company_db: str = ""
    username: str = ""
    password: str = ""
    language: Optional[int] = None
    verify_ssl: bool = True
    timeout_seconds: int = 60
    retry_config: RetryConfig = field(default_factory=RetryConfig)

    def url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"


def parse_error_body(response_text: str) -> Tuple[int, str]:
    """Extract (code, message) from a Service Layer error body.

    Handles both shapes:
        {"error": {"code": -5002, "message": {"lang": "en-us", "value": "..."}}}
        {"error": {"code": "-5002", "message": "..."}}
    Falls back to (-1, raw text) when the body is not a Service Layer error.
    """
    try:
        body = json.loads(response_text)
    except (TypeError, ValueError):
        return -1, response_text

    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return -1, response_text

    message = error.get("message", "")
    if isinstance(message, dict):
        message = message.get("value", "")

    try:
        code = int(error.get("code", -1))
    except (TypeError, ValueError):
        code = -1

    return code, str(message)


_LOCATION_KEY = re.compile(r"\((\d+)\)$")


def key_from_location(location: Optional[str]) -> Dict[str, Any]:
    """DocEntry from the Location header of a 204 create, e.g. .../Orders(125)."""
    match = _LOCATION_KEY.search(location or "")
    return {"DocEntry": int(match.group(1))} if match else {}


class ServiceLayerClient:
    """HTTP client for the SAP Business One Service Layer.

    Provides:
    - Session login / logout (B1SESSION cookie kept by the aiohttp cookie jar)
    - Entity create / get
    - Error mapping to SLApiError subclasses
    - Retries for reads only; creates are sent exactly once

    Usage:
        client = ServiceLayerClient(api_config)
        await client.login()
        created = await client.create("Orders", {...})
        order = await client.get("Orders", created["DocEntry"])
        await client.logout()
        await client.close()
    """

    def __init__(self, api_config: SLApiConfig):
        self.api_config = api_config
        self._session = None
        self.session_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None

    async def open(self) -> None:
        """Create the HTTP session (idempotent)."""
        if self._session is None:
            import aiohttp
            # Service Layer installs commonly use self-signed certificates
            connector = aiohttp.TCPConnector(ssl=self.api_config.verify_ssl)
            self._session = aiohttp.ClientSession(
                connector=connector,
                cookie_jar=aiohttp.CookieJar(unsafe=True),
            )

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
        self.session_id = None

    async def login(self) -> Dict[str, Any]:
        """Log in to the company database.

        Raises:
            SLAuthenticationError: Credentials rejected
            SLApiError: Service Layer unreachable or other failure
        """
        await self.open()
        data = {
            "CompanyDB": self.api_config.company_db,
            "UserName": self.api_config.username,
            "Password": self.api_config.password,
        }
        if self.api_config.language is not None:
            data["Language"] = self.api_config.language

        response = await self._request("POST", "Login", data=data)
        self.session_id = response.get("SessionId")
        logger.info(
            f"Service Layer session opened for {self.api_config.company_db} "
            f"(timeout {response.get('SessionTimeout')} min)"
        )
        return response

    async def logout(self) -> None:
        """End the Service Layer session."""
        if not self._session or not self.session_id:
            return
        await self._request("POST", "Logout")
        self.session_id = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make a Service Layer request.

        Returns:
            Response JSON (for 204, the DocEntry from the Location header, if any)

        Raises:
            SLAuthenticationError: 401/403
            SLNotFoundError: 404
            SLValidationError: 400
            SLApiError: Other API or transport errors
        """
        if not self._session:
            raise SLApiError("Not connected. Call login() first.")

        import aiohttp

        url = self.api_config.url(endpoint)
        retry_config = self.api_config.retry_config
        retryable = method.upper() in retry_config.retry_methods
        max_attempts = retry_config.max_retries + 1 if retryable else 1
        last_error: Optional[Exception] = None

        for attempt in range(max_attempts):
            try:
                timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)

                async with self._session.request(
                    method,
                    url,
                    json=data,
                    timeout=timeout,
                ) as response:
                    response_text = await response.text()

                    if response.status < 400:
                        if response.status == 204:
                            return key_from_location(response.headers.get("Location"))
                        return json.loads(response_text) if response_text else {}

                    code, message = parse_error_body(response_text)

                    if response.status in (401, 403):
                        raise SLAuthenticationError(message, response.status, response_text, code)

                    if response.status == 404:
                        raise SLNotFoundError(message, response.status, response_text, code)

                    if response.status == 400:
                        raise SLValidationError(message, response.status, response_text, code)

                    if response.status in retry_config.retry_on_status and attempt < max_attempts - 1:
                        delay = retry_config.get_delay(attempt)
                        logger.warning(
                            f"{method} {endpoint} failed with {response.status}, "
                            f"retrying in {delay:.1f}s (attempt {attempt + 1}/{retry_config.max_retries})"
                        )
                        await asyncio.sleep(delay)
                        continue

                    raise SLApiError(message, response.status, response_text, code)

            except SLApiError:
                raise
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                last_error = e
                if attempt < max_attempts - 1:
                    delay = retry_config.get_delay(attempt)
                    logger.warning(
                        f"{method} {endpoint} failed with {type(e).__name__}: {e}, "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise SLApiError(f"{method} {endpoint} failed: {type(e).__name__}: {e}") from e

        raise SLApiError(f"{method} {endpoint} failed: {last_error}")

    async def get(self, entity: str, key: Any) -> Dict[str, Any]:
        """Get a single entity by key, e.g. get("Orders", 125)."""
        return await self._request("GET", f"{entity}({key})")

    async def create(self, entity: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an entity and return it as committed (Service Layer echoes it back)."""
        return await self._request("POST", entity, data=data)

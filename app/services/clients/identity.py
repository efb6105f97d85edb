import httpx
import logging
from typing import Any, Dict, Optional
from app.core.config import settings
from app.core.errors import AuthenticationFailure, ConfigurationError, FleetError, TransientNetworkError, ERROR_MESSAGES

logger = logging.getLogger(__name__)

# Provider error codes that mean the credentials or token are bad
CREDENTIAL_ERRORS = {
    "INVALID_LOGIN_CREDENTIALS",
    "INVALID_PASSWORD",
    "EMAIL_NOT_FOUND",
    "USER_DISABLED",
    "INVALID_EMAIL",
    "INVALID_ID_TOKEN",
    "TOKEN_EXPIRED",
    "USER_NOT_FOUND",
}

class IdentityClientError(FleetError):
    """Unexpected response from the identity provider"""
    status_code = 502
    code = "identity_provider_error"

class IdentityClient:
    """
    A client for the hosted identity provider's REST API.
    Signs users in with email/password and resolves ID tokens to user ids.
    """

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: int = None,
        retries: int = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the identity client.

        Args:
            api_key: Provider web API key
            base_url: Base URL for the provider API
            timeout: Request timeout in seconds
            retries: Connection retries handled by the transport
            transport: Custom transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key or settings.IDENTITY_API_KEY
        self.base_url = base_url or settings.IDENTITY_BASE_URL
        self.timeout = timeout or settings.IDENTITY_TIMEOUT
        self.retries = settings.IDENTITY_MAX_RETRIES if retries is None else retries
        self._transport = transport

        if not self.api_key:
            raise ConfigurationError("Identity provider API key is required")
        if not self.base_url:
            raise ConfigurationError("Identity provider base URL is required")

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST to the provider and return the JSON body.

        Raises:
            AuthenticationFailure: The provider rejected the credentials or token
            TransientNetworkError: The provider could not be reached
            IdentityClientError: Any other provider error
        """
        url = f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        try:
            # Only connection failures are retried, never a request that reached the server
            transport = self._transport or httpx.AsyncHTTPTransport(retries=self.retries)
            async with httpx.AsyncClient(timeout=self.timeout, transport=transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            code = self._error_code(e.response)
            if code in CREDENTIAL_ERRORS:
                logger.info(f"Identity provider rejected request: {code}")
                raise AuthenticationFailure(ERROR_MESSAGES["AUTH_FAILED"])
            if e.response.status_code >= 500:
                logger.error(f"Identity provider unavailable ({e.response.status_code})")
                raise TransientNetworkError(ERROR_MESSAGES["NETWORK_ERROR"])
            error_msg = f"Identity provider error ({e.response.status_code}): {code}"
            logger.error(error_msg)
            raise IdentityClientError(error_msg)
        except httpx.TransportError as e:
            logger.error(f"Error reaching identity provider: {str(e)}")
            raise TransientNetworkError(ERROR_MESSAGES["NETWORK_ERROR"])

    @staticmethod
    def _error_code(response: httpx.Response) -> str:
        try:
            message = response.json().get("error", {}).get("message", "")
        except ValueError:
            return response.text
        # Messages look like "INVALID_PASSWORD : optional detail"
        return message.split(":")[0].strip()

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """
        Authenticate with email and password.

        Returns:
            Dict with uid, email, id_token, refresh_token and expires_in
        """
        data = await self._post("accounts:signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return {
            "uid": data["localId"],
            "email": data.get("email", email),
            "id_token": data["idToken"],
            "refresh_token": data.get("refreshToken", ""),
            "expires_in": int(data.get("expiresIn", 3600)),
        }

    async def lookup(self, id_token: str) -> str:
        """Resolve an ID token to the user id it was issued for."""
        data = await self._post("accounts:lookup", {"idToken": id_token})
        users = data.get("users") or []
        if not users:
            raise AuthenticationFailure(ERROR_MESSAGES["AUTH_FAILED"])
        return users[0]["localId"]

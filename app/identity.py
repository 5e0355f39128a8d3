"""Identity bootstrap against Firebase Authentication.

The bootstrap establishes one session identity before the summarize action is
enabled. It never fails: when the provider is unusable it falls back to a locally
generated id and leaves a warning for the page to display.
"""

from __future__ import annotations

import abc
import asyncio
import enum
import logging
import uuid
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import aclosing
from typing import Any

import httpx

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"

TOKEN_SIGN_IN_FAILED = (
    "Erreur de connexion avec le jeton personnalisé. Tentative de connexion anonyme."
)
ANONYMOUS_SIGN_IN_FAILED = (
    "Erreur de connexion anonyme. Certaines fonctionnalités peuvent être limitées."
)
PROVIDER_INIT_FAILED = "Erreur d'initialisation de l'application. Veuillez réessayer."


class IdentityProviderError(RuntimeError):
    """Raised when the identity provider rejects or cannot serve a sign-in."""


class IdentityState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    DEGRADED = "degraded"


class IdentityProvider(abc.ABC):
    """Sign-in operations this app consumes from an identity provider."""

    @abc.abstractmethod
    def observe_current_identity(self) -> AsyncIterator[str | None]:
        """Yield the current identity right away, then every change."""

    @abc.abstractmethod
    async def sign_in_anonymously(self) -> str:
        """Create an anonymous account and return its localId."""
        ...

    @abc.abstractmethod
    async def sign_in_with_token(self, token: str) -> str:
        """Exchange a custom token for an idToken, then look up its localId."""
        ...


class FirebaseIdentityProvider(IdentityProvider):
    """Firebase Authentication through the Identity Toolkit REST API.

    The signed-in user is kept in memory for the lifetime of the process only.
    """

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        base_url: str = IDENTITY_TOOLKIT_URL,
        timeout: float = 30.0,
    ) -> None:
        if not api_key:
            raise IdentityProviderError("Firebase config has no apiKey")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client
        self._current: str | None = None
        self._listeners: list[asyncio.Queue] = []

    @classmethod
    def from_config(
        cls, provider_config: Mapping[str, Any], client: httpx.AsyncClient | None = None
    ) -> "FirebaseIdentityProvider":
        """Build a provider from a Firebase web config mapping."""
        return cls(
            api_key=str(provider_config.get("apiKey") or ""),
            client=client,
            base_url=provider_config.get("identityToolkitUrl") or IDENTITY_TOOLKIT_URL,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the HTTP client, opening an owned one on first use after a close."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close an owned client; the next call opens a fresh one."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def current_identity(self) -> str | None:
        """The signed-in user id, if any."""
        return self._current

    async def observe_current_identity(self) -> AsyncIterator[str | None]:
        """Yield the current user id, then each id set by a later sign-in."""
        queue: asyncio.Queue = asyncio.Queue()
        self._listeners.append(queue)
        try:
            yield self._current
            while True:
                yield await queue.get()
        finally:
            self._listeners.remove(queue)

    async def sign_in_anonymously(self) -> str:
        data = await self._call("accounts:signUp", {"returnSecureToken": True})
        return self._set_current(data.get("localId"))

    async def sign_in_with_token(self, token: str) -> str:
        data = await self._call(
            "accounts:signInWithCustomToken", {"token": token, "returnSecureToken": True}
        )
        id_token = data.get("idToken")
        if not id_token:
            raise IdentityProviderError("custom token sign-in returned no idToken")
        lookup = await self._call("accounts:lookup", {"idToken": id_token})
        users = lookup.get("users") or [{}]
        return self._set_current(users[0].get("localId"))

    async def _call(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST one Identity Toolkit method and return its JSON body."""
        try:
            response = await self.client.post(
                f"{self.base_url}/{method}", params={"key": self.api_key}, json=body
            )
        except httpx.HTTPError as exc:
            raise IdentityProviderError(f"{method} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not response.is_success:
            error = data.get("error") if isinstance(data, dict) else None
            detail = error.get("message") if isinstance(error, dict) else None
            raise IdentityProviderError(
                f"{method} failed: {response.status_code} - {detail or response.reason_phrase}"
            )
        if not isinstance(data, dict):
            raise IdentityProviderError(f"{method} returned an unexpected payload")
        return data

    def _set_current(self, uid: Any) -> str:
        """Record a new user id and notify observers."""
        if not isinstance(uid, str) or not uid:
            raise IdentityProviderError("provider returned no user id")
        self._current = uid
        for queue in self._listeners:
            queue.put_nowait(uid)
        return uid


class IdentityBootstrap:
    """Runs the startup sign-in sequence exactly once.

    Order: existing identity, then the bootstrap credential, then anonymous
    sign-in, then a local random id. ``ready`` is set on every exit path.
    """

    def __init__(
        self,
        provider: IdentityProvider | None,
        bootstrap_credential: str | None = None,
        on_warning: Callable[[str], None] | None = None,
    ) -> None:
        self.provider = provider
        self.bootstrap_credential = bootstrap_credential
        self.on_warning = on_warning
        self.state = IdentityState.UNINITIALIZED
        self.identity: str | None = None
        self.ready = False
        self._task: asyncio.Future | None = None

    async def run(self) -> str:
        """Sign in once; concurrent and later callers share the same outcome."""
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        return await self._task

    async def _run(self) -> str:
        self.state = IdentityState.AUTHENTICATING
        try:
            identity = await self._authenticate()
            if identity is not None:
                self._finish(identity, IdentityState.AUTHENTICATED)
        finally:
            if self.identity is None:
                self._finish(str(uuid.uuid4()), IdentityState.DEGRADED)
        return self.identity

    async def _authenticate(self) -> str | None:
        if self.provider is None:
            self._warn(PROVIDER_INIT_FAILED)
            return None

        try:
            identity = await self._observe_existing()
        except Exception:
            logger.exception("Could not observe the current identity")
            identity = None
        if identity is not None:
            logger.info("Reusing existing identity")
            return identity

        if self.bootstrap_credential:
            try:
                return await self.provider.sign_in_with_token(self.bootstrap_credential)
            except Exception as exc:
                logger.warning("Custom token sign-in failed: %s", exc)
                self._warn(TOKEN_SIGN_IN_FAILED)

        try:
            return await self.provider.sign_in_anonymously()
        except Exception as exc:
            logger.warning("Anonymous sign-in failed, using a local id: %s", exc)
            self._warn(ANONYMOUS_SIGN_IN_FAILED)
            return None

    async def _observe_existing(self) -> str | None:
        async with aclosing(self.provider.observe_current_identity()) as identities:
            async for identity in identities:
                return identity
        return None

    def _finish(self, identity: str, state: IdentityState) -> None:
        self.identity = identity
        self.state = state
        self.ready = True
        logger.info("Identity bootstrap finished: %s", state.value)

    def _warn(self, text: str) -> None:
        if self.on_warning is not None:
            self.on_warning(text)

import asyncio
import json

import httpx
import pytest

from app.config import Settings
from app.identity import IdentityBootstrap, IdentityProvider, IdentityProviderError
from app.messages import TransientMessage
from app.page import SummaryPage
from app.summarize_service import SummarizeService

ENDPOINT = "https://generativelanguage.test/v1beta/models/gemini-2.0-flash:generateContent?key=test-key"


def candidate_body(*texts: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]}


class FakeProvider(IdentityProvider):
    """In-memory identity provider recording which operations were called."""

    def __init__(
        self,
        existing=None,
        anonymous_uid="anon-uid",
        token_uid="token-uid",
        fail_anonymous=False,
        fail_token=False,
        fail_observe=False,
        gate=None,
    ):
        self.existing = existing
        self.anonymous_uid = anonymous_uid
        self.token_uid = token_uid
        self.fail_anonymous = fail_anonymous
        self.fail_token = fail_token
        self.fail_observe = fail_observe
        self.gate = gate
        self.calls = []

    async def observe_current_identity(self):
        self.calls.append("observe")
        if self.fail_observe:
            raise IdentityProviderError("observer unavailable")
        yield self.existing

    async def sign_in_anonymously(self):
        self.calls.append("anonymous")
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_anonymous:
            raise IdentityProviderError("accounts:signUp failed: 400 - ADMIN_ONLY_OPERATION")
        return self.anonymous_uid

    async def sign_in_with_token(self, token):
        self.calls.append(("token", token))
        if self.fail_token:
            raise IdentityProviderError("accounts:signInWithCustomToken failed: 400 - INVALID_CUSTOM_TOKEN")
        return self.token_uid


class FakeEndpoint:
    """Mock generateContent endpoint; optionally holds requests until released."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.body = candidate_body("Un résumé.")
        self.error = None
        self.gate = None
        self.content = None

    def respond(self, status_code=200, body=None, content=None):
        self.status_code = status_code
        self.body = body
        self.content = content

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.body)

    def sent_payloads(self):
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def endpoint():
    return FakeEndpoint()


@pytest.fixture
def service(endpoint):
    client = httpx.AsyncClient(transport=httpx.MockTransport(endpoint.handle))
    return SummarizeService(ENDPOINT, client=client)


@pytest.fixture
def settings():
    return Settings(endpoint_url=ENDPOINT, provider_config={"apiKey": "firebase-key"})


@pytest.fixture
def make_page(service):
    """Factory for a SummaryPage whose identity bootstrap has already run."""

    async def _make(provider=None, bootstrap=True, ttl=5.0):
        page = SummaryPage(
            IdentityBootstrap(provider or FakeProvider()),
            service,
            TransientMessage(ttl=ttl),
        )
        if bootstrap:
            await asyncio.wait_for(page.bootstrap.run(), timeout=1)
        return page

    return _make

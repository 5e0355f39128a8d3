"""This package contains classes to manage the Gemini generateContent communication"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

INSTRUCTION = (
    "Veuillez résumer le texte suivant d'une vidéo YouTube en français. "
    "Fournissez un résumé concis et clair qui capture les points principaux et les idées clés. "
    "Le résumé doit être facile à lire et à comprendre. Voici le texte : \n\n"
)


class SummaryError(RuntimeError):
    """Base error raised when no summary could be obtained."""


class SummaryAPIError(SummaryError):
    """Raised when the endpoint answers with a non-2xx status."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"Erreur API: {status_code} - {detail}")
        self.status_code = status_code
        self.detail = detail


class EmptySummaryError(SummaryError):
    """Raised when a successful response carries no candidate text."""


class SummarizeService:
    """Sends one transcript per request to a generateContent endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the HTTP client, opening an owned one on first use after a close."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close an owned client; the next request opens a fresh one."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def build_payload(transcript: str) -> dict[str, Any]:
        """Wrap the instruction and the verbatim transcript in a single user turn."""
        return {
            "contents": [
                {"role": "user", "parts": [{"text": f"{INSTRUCTION}{transcript}"}]},
            ]
        }

    async def generate(self, transcript: str) -> str:
        """Return the first text segment of the first candidate, untouched."""
        response = await self.client.post(
            self.endpoint_url,
            json=self.build_payload(transcript),
            headers={"Content-Type": "application/json"},
        )

        if not response.is_success:
            raise SummaryAPIError(response.status_code, self._error_detail(response))

        return self.extract_text(response.json())

    @staticmethod
    def extract_text(result: Any) -> str:
        """Pull candidates[0].content.parts[0].text out of a response body."""
        try:
            text = result["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            logger.error("Unexpected response shape: %r", result)
            raise EmptySummaryError("response carries no candidate text") from exc
        if not isinstance(text, str):
            logger.error("Unexpected response shape: %r", result)
            raise EmptySummaryError("candidate text is not a string")
        return text

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return response.reason_phrase

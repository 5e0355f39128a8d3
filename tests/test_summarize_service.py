import httpx
import pytest

from app.summarize_service import INSTRUCTION, EmptySummaryError, SummarizeService, SummaryAPIError
from conftest import ENDPOINT, candidate_body


class TestBuildPayload:
    def test_single_user_turn_with_instruction_and_verbatim_transcript(self):
        transcript = "  Bonjour à tous,\n  aujourd'hui on parle de Python.  "
        payload = SummarizeService.build_payload(transcript)

        assert list(payload) == ["contents"]
        assert len(payload["contents"]) == 1
        turn = payload["contents"][0]
        assert turn["role"] == "user"
        assert turn["parts"] == [{"text": INSTRUCTION + transcript}]

    def test_instruction_asks_for_a_french_summary(self):
        assert "en français" in INSTRUCTION
        assert INSTRUCTION.endswith("Voici le texte : \n\n")


class TestGenerate:
    @pytest.mark.asyncio
    async def test_returns_first_segment_untransformed(self, service, endpoint):
        endpoint.respond(200, candidate_body("  **Points clés**\n- un\n- deux  ", "second segment"))

        text = await service.generate("transcript")

        assert text == "  **Points clés**\n- un\n- deux  "

    @pytest.mark.asyncio
    async def test_posts_json_to_the_configured_url(self, service, endpoint):
        await service.generate("hello world")

        assert len(endpoint.requests) == 1
        request = endpoint.requests[0]
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["content-type"] == "application/json"
        assert endpoint.sent_payloads()[0]["contents"][0]["parts"][0]["text"].endswith("hello world")

    @pytest.mark.asyncio
    async def test_error_status_carries_provider_message(self, service, endpoint):
        endpoint.respond(500, {"error": {"message": "quota exceeded"}})

        with pytest.raises(SummaryAPIError) as excinfo:
            await service.generate("transcript")

        assert excinfo.value.status_code == 500
        assert excinfo.value.detail == "quota exceeded"
        assert str(excinfo.value) == "Erreur API: 500 - quota exceeded"

    @pytest.mark.asyncio
    async def test_error_status_without_json_falls_back_to_reason(self, service, endpoint):
        endpoint.respond(503, content=b"<html>upstream down</html>")

        with pytest.raises(SummaryAPIError) as excinfo:
            await service.generate("transcript")

        assert excinfo.value.status_code == 503
        assert excinfo.value.detail == "Service Unavailable"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"candidates": []},
            {"candidates": [{}]},
            {"candidates": [{"content": {"parts": []}}]},
            {"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]},
            {"candidates": [{"content": {"parts": [{"text": None}]}}]},
            [],
        ],
    )
    async def test_missing_candidate_text_is_an_empty_summary(self, service, endpoint, body):
        endpoint.respond(200, body)

        with pytest.raises(EmptySummaryError):
            await service.generate("transcript")

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, service, endpoint):
        endpoint.error = httpx.ConnectError("connection refused")

        with pytest.raises(httpx.ConnectError):
            await service.generate("transcript")


class TestClientOwnership:
    @pytest.mark.asyncio
    async def test_injected_client_is_left_open(self, endpoint):
        client = httpx.AsyncClient(transport=httpx.MockTransport(endpoint.handle))
        service = SummarizeService(ENDPOINT, client=client)

        await service.aclose()

        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_is_closed_and_reopened(self):
        service = SummarizeService(ENDPOINT)
        first = service.client

        await service.aclose()

        assert first.is_closed
        assert service.client is not first
        assert not service.client.is_closed
        await service.aclose()

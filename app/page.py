"""State behind the single-page form: identity gate, in-flight flag, summary, message."""

from __future__ import annotations

import logging
from typing import Any

from .identity import IdentityBootstrap
from .messages import TransientMessage
from .summarize_service import EmptySummaryError, SummarizeService, SummaryAPIError

logger = logging.getLogger(__name__)

EMPTY_TRANSCRIPT = "Veuillez coller la transcription de la vidéo pour la résumer."
NOT_READY = "L'authentification n'est pas encore prête. Veuillez patienter."
SUMMARY_OK = "Résumé généré avec succès !"
NO_SUMMARY = "Aucun résumé n'a pu être généré. Veuillez réessayer."
SUMMARY_FAILED = "Erreur lors de la génération du résumé: {}"


class SummaryPage:
    """Process-wide page state mutated only from the event loop."""

    def __init__(
        self,
        bootstrap: IdentityBootstrap,
        service: SummarizeService,
        message: TransientMessage | None = None,
    ) -> None:
        self.bootstrap = bootstrap
        self.service = service
        self.message = message or TransientMessage()
        self.summary: str | None = None
        self.in_flight = False
        if bootstrap.on_warning is None:
            bootstrap.on_warning = lambda text: self.message.show(text, "warning")

    @property
    def ready(self) -> bool:
        return self.bootstrap.ready

    @property
    def can_summarize(self) -> bool:
        """Whether the summarize button is enabled."""
        return self.ready and not self.in_flight

    async def summarize(self, transcript: str) -> bool:
        """Run one summarize request. Returns False when no call was issued."""
        if self.in_flight:
            return False
        if not self.ready:
            self.message.show(NOT_READY, "error")
            return False
        if not transcript or not transcript.strip():
            self.message.show(EMPTY_TRANSCRIPT, "error")
            return False

        self.in_flight = True
        self.message.clear()
        try:
            text = await self.service.generate(transcript)
        except EmptySummaryError:
            self.message.show(NO_SUMMARY, "error")
        except SummaryAPIError as exc:
            logger.warning("Summary endpoint answered %s: %s", exc.status_code, exc.detail)
            self.message.show(SUMMARY_FAILED.format(exc), "error")
        except Exception as exc:
            logger.exception("Summary generation failed")
            self.message.show(SUMMARY_FAILED.format(exc), "error")
        else:
            self.summary = text
            self.message.show(SUMMARY_OK, "success")
        finally:
            self.in_flight = False
        return True

    def snapshot(self) -> dict[str, Any]:
        current = self.message.current
        return {
            "ready": self.ready,
            "in_flight": self.in_flight,
            "user_id": self.bootstrap.identity,
            "identity_state": self.bootstrap.state.value,
            "summary": self.summary,
            "message": current.as_dict() if current else None,
        }

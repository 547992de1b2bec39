from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol

import anthropic
from sqlalchemy.orm import Session

from listing_sync.core.config import get_settings
from listing_sync.core.errors import NarrativeUnavailableError
from listing_sync.models.listing import Listing
from listing_sync.services.audit_service import get_audit


logger = logging.getLogger("listing_sync.narrative")

NARRATIVE_SYSTEM_PROMPT = (
    "You are a Google Business Profile optimisation expert writing for a small business owner.\n\n"
    "Write clear, friendly assessments in plain English.\n"
    "Assume the reader is non-technical.\n"
    "Be encouraging about what is working well, and practical about what needs improving.\n"
    "Order recommendations by impact, biggest difference first."
)


@dataclass(frozen=True)
class GeneratedText:
    content: str
    model: str


@dataclass(frozen=True)
class AuditNarrative:
    audit_id: str
    narrative: str
    model: str

    def to_dict(self) -> dict[str, str]:
        return {"audit_id": self.audit_id, "narrative": self.narrative, "model": self.model}


class TextGenerator(Protocol):
    def generate(self, system_prompt: str, user_prompt: str, *, max_tokens: int, temperature: float) -> GeneratedText:
        ...


class AnthropicTextGenerator:
    """Messages API backed generator; the model comes from settings unless overridden."""

    def __init__(self, model: str | None = None, *, client: anthropic.Anthropic | None = None) -> None:
        settings = get_settings()
        self.model = model or settings.narrative_model
        self.client = client or anthropic.Anthropic(api_key=settings.anthropic_api_key.get_secret_value())

    def generate(self, system_prompt: str, user_prompt: str, *, max_tokens: int, temperature: float) -> GeneratedText:
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as exc:
            raise NarrativeUnavailableError(f"Narrative generation failed: {exc}") from exc
        text = "".join(block.text for block in message.content if getattr(block, "type", None) == "text")
        if not text.strip():
            raise NarrativeUnavailableError("Narrative generation returned no text.")
        return GeneratedText(content=text.strip(), model=message.model)


def build_narrative_prompt(*, business_name: str, overall_score: str, scores: list[dict]) -> str:
    return (
        f"Based on this Google Business Profile audit data for {business_name}, write a brief assessment.\n"
        f"Score: {overall_score}. Category scores: {json.dumps(scores, indent=2)}.\n\n"
        "Write 2-3 paragraphs explaining:\n"
        "1. What is working well\n"
        "2. What needs fixing\n"
        "3. Prioritised next steps\n\n"
        "Return only the narrative text."
    )


def generate_audit_narrative(db: Session, audit_id: str, generator: TextGenerator) -> AuditNarrative:
    record = get_audit(db, audit_id)
    listing = db.get(Listing, record.listing_id)
    business_name = listing.business_name if listing is not None else "this business"

    scores = [
        {key: category[key] for key in ("category", "score", "max_score", "percentage")}
        for category in json.loads(record.categories_json or "[]")
    ]
    settings = get_settings()
    generated = generator.generate(
        NARRATIVE_SYSTEM_PROMPT,
        build_narrative_prompt(
            business_name=business_name,
            overall_score=f"{record.letter_grade} ({round(record.percentage)}%)",
            scores=scores,
        ),
        max_tokens=settings.narrative_max_tokens,
        temperature=settings.narrative_temperature,
    )
    logger.info("audit.narrative.generated", extra={"listing_id": record.listing_id, "operation": "audit_narrative"})
    return AuditNarrative(audit_id=record.id, narrative=generated.content, model=generated.model)

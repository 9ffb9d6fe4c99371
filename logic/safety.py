"""Centralised system prompts shared by the vision calls."""

from __future__ import annotations

from typing import List

GUARDRAIL_BULLETS: List[str] = [
    "Only describe or choose clothing that is visible in the provided images.",
    "Never invent item ids; use the ids exactly as given.",
    "Do not comment on the person wearing the clothes, only on the garments.",
    "Reply with a single JSON object and nothing else: no markdown, no comments.",
]

ANALYSIS_PROMPT = """
Analyze the clothing in the image and return ONLY valid JSON:
{
  "description": string,
  "aesthetics": string[],
  "palette": string[],
  "suggestions": string[]
}
"description" is one short sentence naming the garment type, "aesthetics" holds 3-5 vibes
(e.g. minimal, streetwear), "palette" up to 5 HEX colors like "#AABBCC" and "suggestions"
3 short outfit pairings or styling ideas.
""".strip()

SELECTION_PROMPT = """
Pick a coherent outfit from the closet items below. Choose at most one top, one bottom
or one one-piece garment, and optionally shoes and accessories. Return ONLY valid JSON:
{
  "selectedIds": string[],
  "outfitDescription": string,
  "style": string,
  "occasion": string,
  "colorScheme": string,
  "reasoning": string
}
Each item's image follows in the same order as the list.
""".strip()


def system_instruction(role_hint: str) -> str:
    """Compose a consistent system prompt with boundary reminders."""

    boundary_text = "\n".join(f"- {bullet}" for bullet in GUARDRAIL_BULLETS)
    return (
        f"You are the Outfitly {role_hint}.\n"
        "Follow these rules before responding:\n"
        f"{boundary_text}"
    )


__all__ = ["ANALYSIS_PROMPT", "GUARDRAIL_BULLETS", "SELECTION_PROMPT", "system_instruction"]

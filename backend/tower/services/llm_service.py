"""LLM service - the content oracle that designs new tower floors via DashScope.

Builds a prompt from the card catalogue, a reference deck and the target
difficulty curve, then validates the JSON it gets back. Any failure raises
ExternalServiceError so the resilient generator can fall back.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from functools import partial
from pathlib import Path

import yaml
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from tower.config import settings
from tower.core.deck_rules import (
    AI_MAX_LEGENDARY_CARDS,
    AI_MAX_SAME_NAME_CARDS,
    AI_POWERUPS_PER_LEVEL,
    CARDS_PER_DECK,
    DeckCardInfo,
    calculate_max_powerups,
    check_ai_deck,
    scale_power_ups,
)
from tower.core.difficulty import average_card_level, calculate_target_average_level
from tower.exceptions import ExternalServiceError
from tower.schemas.tower import (
    CatalogueCard,
    GeneratedDeckCard,
    GeneratedFloorDeck,
    GenerationRequest,
    PowerUps,
)

logger = logging.getLogger("tower.generation")

PROMPT_DIR = Path(__file__).parent.parent / "data" / "prompts"

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


def _get_generation():
    """Lazy import of dashscope.Generation to avoid import-time crashes in test."""
    import dashscope
    from dashscope import Generation

    dashscope.api_key = settings.DASHSCOPE_API_KEY
    return Generation


def load_prompt_config(name: str = "floor_generation") -> dict:
    """Load a prompt YAML (system_prompt, user_prompt_template, model_params)."""
    path = PROMPT_DIR / f"{name}.yaml"
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


# Lenient shapes for what the model sends back; normalised before use
class _OracleCard(BaseModel):
    card_name: str | None = None
    name: str | None = None
    level: int = 1
    power_ups: dict[str, int] | None = None


class _OracleFloor(BaseModel):
    floor_number: int | None = None
    floor_name: str | None = None
    deck_name: str | None = None
    cards: list[_OracleCard] = []


def extract_json_array(text: str) -> str:
    """Pull the JSON array out of a reply that may wrap it in markdown or prose."""
    match = _CODE_BLOCK.search(text)
    if match:
        text = match.group(1).strip()
    match = _JSON_ARRAY.search(text)
    if match:
        text = match.group(0)
    return text


def _format_power(top: int, right: int, bottom: int, left: int) -> str:
    return f"[{top}/{right}/{bottom}/{left}]"


class OracleFloorGenerator:
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        prompt_config: dict | None = None,
    ):
        self.api_key = settings.DASHSCOPE_API_KEY if api_key is None else api_key
        self.model = model or settings.LLM_MODEL
        self.timeout = timeout or settings.ORACLE_TIMEOUT_SECONDS
        self._prompt_config = prompt_config if prompt_config is not None else load_prompt_config()
        self._model_params = self._prompt_config.get("model_params", {})

    async def generate(self, request: GenerationRequest) -> list[GeneratedFloorDeck]:
        if not self.api_key:
            logger.warning("DASHSCOPE_API_KEY not set, using fallback generation")
            raise ExternalServiceError("Content oracle API key not configured")

        prompt = self.build_prompt(request)
        logger.info(
            "Sending floor generation prompt to %s (%d characters)", self.model, len(prompt)
        )
        logger.debug("Floor generation prompt:\n%s", prompt)

        text = await self._call(prompt)
        logger.info("Received floor generation reply (%d characters)", len(text))
        logger.debug("Floor generation reply:\n%s", text)

        floors = self.parse_response(text, request)
        if not floors:
            raise ExternalServiceError("Content oracle returned no usable floors")
        return floors

    # ------------------------------------------------------------------
    # Prompt
    # ------------------------------------------------------------------

    def build_prompt(self, request: GenerationRequest) -> str:
        template = self._prompt_config.get("user_prompt_template", "")
        end_floor = request.start_floor + request.count - 1
        reference = request.reference_deck

        if reference and reference.cards:
            reference_header = (
                f"Floor {reference.floor_number}, Average Level: {reference.average_level:.1f}, "
                f"Average Power: {reference.average_power:.1f}"
            )
            reference_cards = "\n".join(
                f"  - {c.name} (Level {c.level}) "
                + _format_power(
                    c.effective_power.top,
                    c.effective_power.right,
                    c.effective_power.bottom,
                    c.effective_power.left,
                )
                for c in reference.cards
            )
        else:
            reference_header = "none yet"
            reference_cards = "  (no reference deck, follow the target levels)"

        target_levels = "\n".join(
            f"Floor {n}: ~{calculate_target_average_level(n):.1f}" for n in request.floor_numbers
        )

        return template.format(
            count=request.count,
            start_floor=request.start_floor,
            end_floor=end_floor,
            card_list=self._format_catalogue(request.catalogue),
            reference_header=reference_header,
            reference_cards=reference_cards,
            target_levels=target_levels,
            cards_per_deck=CARDS_PER_DECK,
            max_legendary=AI_MAX_LEGENDARY_CARDS,
            max_same_name=AI_MAX_SAME_NAME_CARDS,
            powerups_per_level=AI_POWERUPS_PER_LEVEL,
            level_5_powerups=calculate_max_powerups(5),
            level_10_powerups=calculate_max_powerups(10),
        )

    @staticmethod
    def _format_catalogue(catalogue: list[CatalogueCard]) -> str:
        by_rarity: dict[str, list[CatalogueCard]] = {}
        for card in catalogue:
            by_rarity.setdefault(card.rarity, []).append(card)

        sections = []
        for rarity, cards in by_rarity.items():
            lines = []
            for c in cards:
                power = _format_power(
                    c.base_power.top, c.base_power.right, c.base_power.bottom, c.base_power.left
                )
                ability = f" - {c.ability_name}: {c.ability_description}" if c.ability_name else ""
                lines.append(f"  - {c.name} {power}{ability}")
            sections.append(f"{rarity.upper()}:\n" + "\n".join(lines))
        return "\n\n".join(sections)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _call(self, prompt: str) -> str:
        Generation = _get_generation()
        call = partial(
            Generation.call,
            model=self.model,
            api_key=self.api_key,
            messages=[
                {"role": "system", "content": self._prompt_config.get("system_prompt", "")},
                {"role": "user", "content": prompt},
            ],
            result_format="message",
            temperature=self._model_params.get("temperature", 0.7),
            max_tokens=self._model_params.get("max_tokens", 8192),
        )

        try:
            # The SDK call blocks; run it off the loop and stop waiting at the timeout
            response = await asyncio.wait_for(asyncio.to_thread(call), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ExternalServiceError(
                f"Content oracle timed out after {self.timeout:.0f}s"
            ) from e
        except Exception as e:
            raise ExternalServiceError(f"Content oracle request failed: {e}") from e

        if response.status_code != 200:
            raise ExternalServiceError(
                f"LLM API error: {response.status_code} - {response.message}"
            )
        try:
            return response.output.choices[0].message.content or ""
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise ExternalServiceError(f"Malformed oracle reply: {e}") from e

    # ------------------------------------------------------------------
    # Parsing & validation
    # ------------------------------------------------------------------

    def parse_response(
        self, text: str, request: GenerationRequest
    ) -> list[GeneratedFloorDeck]:
        """Parse the reply into usable floors; anything unusable is dropped and logged."""
        try:
            raw = json.loads(extract_json_array(text))
        except json.JSONDecodeError as e:
            logger.error("Failed to parse oracle reply: %s; preview: %s", e, text[:500])
            return []

        if not isinstance(raw, list):
            logger.error("Oracle reply is not a JSON array")
            return []

        catalogue = {card.name.lower(): card for card in request.catalogue}
        wanted = set(request.floor_numbers)
        floors: dict[int, GeneratedFloorDeck] = {}

        for index, item in enumerate(raw):
            try:
                parsed = _OracleFloor.model_validate(item)
            except SchemaError as e:
                logger.warning("Skipping malformed floor #%d in oracle reply: %s", index, e)
                continue

            floor_number = parsed.floor_number or request.start_floor + index
            if floor_number not in wanted or floor_number in floors:
                logger.warning("Skipping unexpected floor %s in oracle reply", floor_number)
                continue

            cards = self._normalize_cards(parsed.cards, catalogue, floor_number)
            problems = check_ai_deck(
                DeckCardInfo(c.card_name, catalogue[c.card_name.lower()].rarity) for c in cards
            )
            if problems:
                logger.warning(
                    "Discarding oracle floor %d: deck %s", floor_number, "; ".join(problems)
                )
                continue

            floors[floor_number] = GeneratedFloorDeck(
                floor_number=floor_number,
                floor_name=parsed.floor_name or f"Floor {floor_number}",
                deck_name=parsed.deck_name or f"Floor {floor_number} Deck",
                cards=cards,
                average_card_level=average_card_level([c.level for c in cards]),
            )

        for floor in floors.values():
            logger.info(
                "  - Floor %d: %d cards, avg level: %s",
                floor.floor_number,
                len(floor.cards),
                floor.average_card_level,
            )
        return sorted(floors.values(), key=lambda f: f.floor_number)

    @staticmethod
    def _normalize_cards(
        cards: list[_OracleCard], catalogue: dict[str, CatalogueCard], floor_number: int
    ) -> list[GeneratedDeckCard]:
        normalized = []
        for card in cards:
            name = card.card_name or card.name or ""
            known = catalogue.get(name.lower())
            if known is None:
                logger.warning("Floor %d: unknown card %r dropped", floor_number, name)
                continue

            level = max(1, card.level)
            raw = card.power_ups or {}
            power_ups = PowerUps(
                top=max(0, raw.get("top", 0)),
                right=max(0, raw.get("right", 0)),
                bottom=max(0, raw.get("bottom", 0)),
                left=max(0, raw.get("left", 0)),
            )
            max_powerups = calculate_max_powerups(level, is_ai=True)
            if power_ups.total > max_powerups:
                logger.warning(
                    'Floor %d: card "%s" level %d had %d powerups (max: %d), scaled down',
                    floor_number,
                    known.name,
                    level,
                    power_ups.total,
                    max_powerups,
                )
                power_ups = scale_power_ups(power_ups, max_powerups)

            normalized.append(
                GeneratedDeckCard(card_name=known.name, level=level, power_ups=power_ups)
            )
        return normalized

#!/usr/bin/env python3
"""CLI script to playtest the Endless Tower economy and floor generation.

Usage:
    python play.py rewards                 # reward table for floors 1-100
    python play.py rewards 90 120          # reward table for a floor range
    python play.py deck 150                # preview the fallback AI deck for a floor
    python play.py deck 150 --seed 7       # same, reproducible
    python play.py climb <user_id>         # climb the tower against a running API
    python play.py bootstrap [count]       # create tables, starter cards and the first floors

`rewards` and `deck` need no server, database, or Docker. `climb` talks to
the API (TOWER_API_URL, default http://localhost:8000). `bootstrap` uses
DATABASE_URL directly.
"""

import asyncio
import os
import random
import sys
from collections import Counter
from pathlib import Path

import requests
import yaml

from tower.core.deck_rules import calculate_max_powerups
from tower.core.difficulty import calculate_target_average_level
from tower.core.reward_formula import get_tower_reward
from tower.exceptions import TowerError
from tower.schemas.tower import CatalogueCard, EdgePower, GenerationRequest
from tower.services.floor_generator import FallbackFloorGenerator

# --- Paths ---
BASE_DIR = Path(__file__).parent
CARDS_PATH = BASE_DIR / "tower" / "data" / "cards" / "starter_catalogue.yaml"

API_URL = os.environ.get("TOWER_API_URL", "http://localhost:8000")

# --- ANSI Colors ---
RARITY_COLORS = {
    "legendary": "\033[93m",
    "epic": "\033[95m",
    "rare": "\033[94m",
    "uncommon": "\033[92m",
    "common": "\033[97m",
}
TIER_COLORS = {"S": "\033[91m", "A": "\033[93m", "B": "\033[95m", "C": "\033[94m", "D": "\033[92m"}

DIVIDER = "\033[90m" + "─" * 60 + "\033[0m"
RESET = "\033[0m"
DIM = "\033[90m"
BOLD = "\033[1m"
YELLOW = "\033[93m"
RED = "\033[91m"


# =============================================================
# Part 1: Reward table (RewardFormula, offline)
# =============================================================

def print_reward_table(start: int = 1, end: int = 100):
    """Print the rewards for every floor in [start, end]."""
    print()
    print(f"{BOLD}  Floor  Band  Tier   Gems  Packs  Frags  Cards{RESET}")
    print(DIVIDER)
    for floor in range(start, end + 1):
        reward = get_tower_reward(floor)
        cards = []
        if reward.rare_art_card:
            cards.append("rare art")
        if reward.legendary_card:
            cards.append("legendary")
        if reward.epic_card:
            cards.append("epic")
        color = TIER_COLORS.get(reward.tier, "")
        print(
            f"  {floor:>5}  {reward.band:>4}  {color}{reward.tier:>4}{RESET}"
            f"  {reward.gems:>5}  {reward.packs:>5}  {reward.card_fragments:>5}  {', '.join(cards)}"
        )
    print()


# =============================================================
# Part 2: Fallback deck preview (FallbackFloorGenerator, offline)
# =============================================================

def load_catalogue() -> list[CatalogueCard]:
    """Load the starter card catalogue YAML."""
    with open(CARDS_PATH, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    catalogue = []
    for i, card in enumerate(raw.get("cards", [])):
        top, right, bottom, left = card["power"]
        catalogue.append(
            CatalogueCard(
                card_id=f"starter-{i}",
                name=card["name"],
                rarity=card["rarity"],
                base_power=EdgePower(top=top, right=right, bottom=bottom, left=left),
                ability_name=card.get("ability"),
                ability_description=card.get("description"),
            )
        )
    return catalogue


def preview_deck(floor_number: int, seed: int | None = None):
    """Build and print the fallback AI deck for one floor."""
    catalogue = load_catalogue()
    rarity = {card.name: card.rarity for card in catalogue}
    generator = FallbackFloorGenerator(random.Random(seed))
    request = GenerationRequest(start_floor=floor_number, count=1, catalogue=catalogue)
    [floor] = asyncio.run(generator.generate(request))

    print()
    print(f"{BOLD}" + "=" * 60 + f"{RESET}")
    print(f"{BOLD}  {floor.floor_name} - {floor.deck_name}{RESET}")
    print(
        f"  {DIM}target avg level {calculate_target_average_level(floor_number):.2f}, "
        f"actual {floor.average_card_level}{RESET}"
    )
    print(f"{BOLD}" + "=" * 60 + f"{RESET}")

    for card in floor.cards:
        color = RARITY_COLORS.get(rarity[card.card_name], "")
        p = card.power_ups
        budget = calculate_max_powerups(card.level)
        print(
            f"  {color}{card.card_name:<14}{RESET} Lv {card.level:>2}"
            f"  +[{p.top}/{p.right}/{p.bottom}/{p.left}] {DIM}({p.total}/{budget}){RESET}"
        )

    counts = Counter(rarity[c.card_name] for c in floor.cards)
    print(DIVIDER)
    print("  " + "  ".join(f"{r}: {counts[r]}" for r in RARITY_COLORS if counts[r]))
    print()


# =============================================================
# Part 3: Climb the tower (HTTP API)
# =============================================================

def api(method: str, path: str, user_id: str | None = None, json: dict | None = None) -> dict | None:
    """Call the tower API. Returns the JSON body, or None after printing the error."""
    params = {"user_id": user_id} if user_id else None
    try:
        resp = requests.request(method, f"{API_URL}{path}", params=params, json=json, timeout=30)
    except requests.exceptions.RequestException as e:
        print(f"\n  {RED}[API error] {e}{RESET}")
        return None

    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        print(f"\n  {RED}[{resp.status_code}] {detail}{RESET}")
        return None
    return resp.json()


def show_progress(user_id: str) -> int | None:
    progress = api("GET", "/api/tower/progress", user_id)
    if progress is None:
        return None
    floors = api("GET", "/api/tower/floors", user_id) or {}
    print()
    print(f"{BOLD}  Current floor: {progress['current_floor']}{RESET}", end="")
    print(f"  {DIM}(highest completed {progress['highest_completed']}, "
          f"tower height {floors.get('max_available_floor', '?')}){RESET}")
    return progress["current_floor"]


def climb(user_id: str):
    """Report wins and losses floor by floor and watch the rewards come in."""
    print()
    print(f"{BOLD}" + "=" * 60 + f"{RESET}")
    print(f"{BOLD}  Endless Tower - {API_URL}{RESET}")
    print(f"{BOLD}" + "=" * 60 + f"{RESET}")
    print(f"  {DIM}[w] win  [l] lose  [p] progress  [q] quit{RESET}")

    current_floor = show_progress(user_id)
    if current_floor is None:
        return

    while True:
        try:
            action = input(f"\n  {BOLD}Floor {current_floor}{RESET} > ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if action in ("q", "quit", "exit"):
            break
        if action in ("p", "progress"):
            current_floor = show_progress(user_id) or current_floor
            continue
        if action not in ("w", "l", "win", "lose"):
            print(f"  {RED}Unknown command: {action}{RESET}")
            continue

        won = action.startswith("w")
        result = api(
            "POST",
            "/api/tower/complete",
            user_id,
            json={"floor_number": current_floor, "won": won},
        )
        if result is None:
            current_floor = show_progress(user_id) or current_floor
            continue

        if not won:
            print(f"  {DIM}Defeated on floor {current_floor}. Nothing changes, try again.{RESET}")
            continue

        rewards = result["rewards_earned"]
        print(
            f"  {YELLOW}Cleared! +{rewards['gems']} gems, +{rewards['packs']} packs, "
            f"+{rewards['card_fragments']} fragments (tier {rewards['tier']}){RESET}"
        )
        for slot, card in (result.get("cards_awarded") or {}).items():
            if card:
                print(f"  {YELLOW}New card ({slot}): {card['name']} [{card['rarity']}]{RESET}")
        if result.get("generation_triggered"):
            print(f"  {DIM}New floors are being generated...{RESET}")
        current_floor = result["new_floor"]


# =============================================================
# Part 4: Bootstrap an empty tower (database)
# =============================================================

async def _bootstrap(count: int) -> list[int]:
    from sqlalchemy import func, select

    import tower.models  # noqa: F401
    from tower.db.database import Base, async_session, engine
    from tower.models import Card
    from tower.services.generation_service import generation_service

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with async_session() as db, db.begin():
            if not await db.scalar(select(func.count()).select_from(Card)):
                for card in load_catalogue():
                    db.add(
                        Card(
                            name=card.name,
                            rarity=card.rarity,
                            power_top=card.base_power.top,
                            power_right=card.base_power.right,
                            power_bottom=card.base_power.bottom,
                            power_left=card.base_power.left,
                            special_ability_name=card.ability_name,
                            special_ability_description=card.ability_description,
                        )
                    )
                print(f"  {DIM}Seeded the starter card catalogue{RESET}")

        return await generation_service.bootstrap(count)
    finally:
        await engine.dispose()


def bootstrap(count: int = 10):
    """Create tables, the AI account and the first floors (DATABASE_URL from .env)."""
    created = asyncio.run(_bootstrap(count))
    if created:
        print(f"\n  {YELLOW}Created floors {created[0]}-{created[-1]}{RESET}\n")
    else:
        print(f"\n  {DIM}Tower already has floors, nothing to do{RESET}\n")


# =============================================================
# Main
# =============================================================

def main():
    args = sys.argv[1:]
    command = args[0] if args else "rewards"

    if command == "rewards":
        start = int(args[1]) if len(args) > 1 else 1
        end = int(args[2]) if len(args) > 2 else max(start, 100)
        print_reward_table(start, end)
    elif command == "deck":
        if len(args) < 2:
            print(f"{RED}Usage: python play.py deck <floor> [--seed N]{RESET}")
            return
        seed = int(args[args.index("--seed") + 1]) if "--seed" in args else None
        preview_deck(int(args[1]), seed)
    elif command == "climb":
        if len(args) < 2:
            print(f"{RED}Usage: python play.py climb <user_id>{RESET}")
            return
        climb(args[1])
    elif command == "bootstrap":
        bootstrap(int(args[1]) if len(args) > 1 else 10)
    else:
        print(__doc__)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print(f"\n\n{DIM}Bye.{RESET}")
    except (TowerError, ValueError) as e:
        print(f"{RED}{e}{RESET}")

"""Difficulty curve - target average AI card level per floor.

Flat at low floors, steeper past 100 and again past 200, so the tower never
outruns the power players can actually reach.
"""


def calculate_target_average_level(floor_number: int) -> float:
    if floor_number <= 1:
        return 1.0
    if floor_number <= 50:
        # 1.0 -> 2.0
        return 1.0 + (floor_number - 1) * 0.02
    if floor_number <= 100:
        # 2.0 -> 3.5
        return 2.0 + (floor_number - 50) * 0.03
    if floor_number <= 200:
        # 3.5 -> 6.5
        return 3.5 + (floor_number - 100) * 0.03
    return 6.5 + (floor_number - 200) * 0.04


def deck_level_for_floor(floor_number: int) -> int:
    """Integer card level the fallback generator uses for a floor's main cards."""
    return max(1, round(calculate_target_average_level(floor_number)))


def average_card_level(levels: list[int]) -> float:
    """Average level rounded to one decimal (1.0 for an empty deck)."""
    if not levels:
        return 1.0
    return round(sum(levels) / len(levels), 1)

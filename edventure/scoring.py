"""Score, XP reward and achievements for a graded exam."""
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import List

import engine
from edventure.models import Achievement


def percent(part: int, whole: int) -> int:
    """100 * part / whole rounded half up (2.5 -> 3), never to even."""
    if whole <= 0:
        return 0
    value = Decimal(100 * part) / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_score(correct: int, total: int) -> int:
    return percent(correct, total)


def xp_bonus(score: int) -> int:
    if score == 100:
        return engine.XP_BONUS_PERFECT
    if score >= 90:
        return engine.XP_BONUS_90
    if score >= 80:
        return engine.XP_BONUS_80
    return 0


def calculate_xp_gained(correct: int, score: int) -> int:
    return correct * engine.XP_PER_CORRECT + xp_bonus(score)


def calculate_achievements(score: int, correct: int, total: int) -> List[Achievement]:
    badges = []
    if score == 100:
        badges.append(Achievement(name="Perfect Score", icon="🎯", description="Flawless performance!"))
    if score >= 90:
        badges.append(Achievement(name="Top Performer", icon="🏆", description="Outstanding achievement!"))
    if total > 0 and correct >= math.floor(total * 0.8):
        badges.append(Achievement(name="Answer Master", icon="🧠", description="Excellent knowledge!"))
    if score >= 80:
        badges.append(Achievement(name="Smart Cookie", icon="🍪", description="Great job!"))
    if score >= 70:
        badges.append(Achievement(name="Rising Star", icon="⭐", description="Keep up the good work!"))
    return badges

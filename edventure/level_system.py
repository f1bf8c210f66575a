"""
99-level progression table for students.

Pure lookups: cumulative XP -> level, theme, progress and milestone rewards.
"""
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from edventure.models import LevelUp
from edventure.scoring import percent

MAX_LEVEL = 99
AVG_XP_PER_EXAM = 15


@dataclass(frozen=True)
class LevelTheme:
    name: str
    emoji: str
    description: str


LEVEL_THEMES: Dict[str, LevelTheme] = {
    "rookie": LevelTheme("Rookie Explorer", "🌱", "Starting your learning journey!"),
    "explorer": LevelTheme("Learning Explorer", "🧭", "Discovering new knowledge!"),
    "adventurer": LevelTheme("Knowledge Adventurer", "⚔️", "Brave learner taking on challenges!"),
    "scholar": LevelTheme("Brilliant Scholar", "📚", "Mastering advanced concepts!"),
    "master": LevelTheme("Learning Master", "🎓", "Exceptional learning mastery!"),
    "legend": LevelTheme("Legend", "👑", "Legendary learning achievement!"),
}

# Cumulative XP needed to reach level (index + 1)
XP_REQUIREMENTS: List[int] = [
    # Levels 1-10: quick early progression
    0, 50, 120, 200, 300, 420, 560, 720, 900, 1100, 1320,
    # Levels 11-20
    1560, 1820, 2100, 2400, 2720, 3060, 3420, 3800, 4200, 4620,
    # Levels 21-30
    5080, 5560, 6060, 6580, 7120, 7680, 8260, 8860, 9480, 10120,
    # Levels 31-40
    10800, 11500, 12220, 12960, 13720, 14500, 15300, 16120, 16960, 17820,
    # Levels 41-50
    18720, 19640, 20580, 21540, 22520, 23520, 24540, 25580, 26640, 27720,
    # Levels 51-60
    28840, 29980, 31140, 32320, 33520, 34740, 35980, 37240, 38520, 39820,
    # Levels 61-70
    41160, 42520, 43900, 45300, 46720, 48160, 49620, 51100, 52600, 54120,
    # Levels 71-80
    55680, 57260, 58860, 60480, 62120, 63780, 65460, 67160, 68880, 70620,
    # Levels 81-90
    72400, 74200, 76020, 77860, 79720, 81600, 83500, 85420, 87360, 89320,
    # Levels 91-99
    91320, 93340, 95380, 97440, 99520, 101620, 103740, 105880, 108040,
]

MILESTONE_LEVELS = (10, 20, 30, 40, 50, 60, 70, 80, 90, 99)

MILESTONE_REWARDS: Dict[int, str] = {
    10: "🏆 First Champion Badge & Special Certificate",
    20: "🌟 Explorer's Compass & Progress Tracker",
    30: "⚔️ Adventure Shield & Skill Boost",
    40: "📖 Scholar's Tome & Knowledge Bonus",
    50: "🎯 Halfway Hero Badge & XP Multiplier",
    60: "🚀 Advanced Achiever Award & Special Powers",
    70: "💎 Expert Diamond Badge & Rare Rewards",
    80: "🔥 Elite Master Status & Exclusive Benefits",
    90: "⭐ Legendary Status & Ultimate Recognition",
    99: "👑 ULTIMATE LEGEND - Hall of Fame Entry!",
}

MILESTONE_NAMES: Dict[int, str] = {
    99: "Ultimate Legend",
    90: "Legendary Master",
    80: "Elite Champion",
    70: "Expert Scholar",
    60: "Advanced Achiever",
    50: "Halfway Hero",
    40: "Brilliant Student",
    30: "Skilled Adventurer",
    20: "Experienced Explorer",
    10: "First Champion",
}


@dataclass(frozen=True)
class LevelInfo:
    level: int
    current_xp: int
    required_xp: int
    progress_percent: int
    next_level_xp: int
    level_name: str
    theme: LevelTheme
    is_milestone: bool
    milestone_reward: Optional[str] = None


def level_theme(level: int) -> LevelTheme:
    if level <= 10:
        return LEVEL_THEMES["rookie"]
    if level <= 25:
        return LEVEL_THEMES["explorer"]
    if level <= 45:
        return LEVEL_THEMES["adventurer"]
    if level <= 65:
        return LEVEL_THEMES["scholar"]
    if level <= 85:
        return LEVEL_THEMES["master"]
    return LEVEL_THEMES["legend"]


def level_name(level: int) -> str:
    if level in MILESTONE_NAMES:
        return MILESTONE_NAMES[level]
    return f"{level_theme(level).name} {level}"


def level_for_xp(xp: int) -> int:
    level = 1
    for index, threshold in enumerate(XP_REQUIREMENTS):
        if xp >= threshold:
            level = index + 1
        else:
            break
    return min(level, MAX_LEVEL)


def level_of(xp: int) -> LevelInfo:
    """Full level information for a cumulative XP total."""
    level = level_for_xp(xp)
    current_level_xp = XP_REQUIREMENTS[level - 1]
    next_level_xp = XP_REQUIREMENTS[level] if level < MAX_LEVEL else XP_REQUIREMENTS[MAX_LEVEL - 1]

    if level == MAX_LEVEL:
        required = 0
        progress = 100
    else:
        required = next_level_xp - current_level_xp
        progress = percent(xp - current_level_xp, required)

    is_milestone = level in MILESTONE_LEVELS
    return LevelInfo(
        level=level,
        current_xp=xp,
        required_xp=required,
        progress_percent=progress,
        next_level_xp=next_level_xp,
        level_name=level_name(level),
        theme=level_theme(level),
        is_milestone=is_milestone,
        milestone_reward=MILESTONE_REWARDS.get(level) if is_milestone else None,
    )


def xp_for_next_level(current_level: int) -> int:
    if current_level >= MAX_LEVEL:
        return 0
    return XP_REQUIREMENTS[current_level]


def total_xp_for_level(level: int) -> int:
    if level <= 1:
        return 0
    if level > MAX_LEVEL:
        return XP_REQUIREMENTS[MAX_LEVEL - 1]
    return XP_REQUIREMENTS[level - 1]


def check_level_up(old_xp: int, new_xp: int) -> LevelUp:
    old_level = level_for_xp(old_xp)
    new_level = level_for_xp(new_xp)
    leveled_up = new_level > old_level
    milestone_reached = leveled_up and new_level in MILESTONE_LEVELS
    return LevelUp(
        leveled_up=leveled_up,
        old_level=old_level,
        new_level=new_level,
        levels_gained=new_level - old_level,
        milestone_reached=milestone_reached,
        milestone_reward=MILESTONE_REWARDS[new_level] if milestone_reached else None,
    )


def upcoming_milestones(current_level: int, count: int = 3) -> List[Dict]:
    upcoming = [level for level in MILESTONE_LEVELS if level > current_level][:count]
    return [
        {"level": level, "xp_needed": XP_REQUIREMENTS[level - 1], "reward": MILESTONE_REWARDS[level]}
        for level in upcoming
    ]


def level_stats(xp: int) -> Dict:
    info = level_of(xp)
    progress_to_max = percent(xp, XP_REQUIREMENTS[MAX_LEVEL - 1])
    remaining = info.next_level_xp - xp if info.required_xp > 0 else 0
    exams_to_next = math.ceil(remaining / AVG_XP_PER_EXAM) if remaining > 0 else 0

    rank = "Beginner"
    if info.level >= 80:
        rank = "Legendary"
    elif info.level >= 60:
        rank = "Master"
    elif info.level >= 40:
        rank = "Expert"
    elif info.level >= 20:
        rank = "Advanced"
    elif info.level >= 10:
        rank = "Experienced"

    return {
        "current_level": info.level,
        "total_levels": MAX_LEVEL,
        "progress_to_max": progress_to_max,
        "level_rank": rank,
        "estimated_exams_to_next": exams_to_next,
    }


_RANKINGS = [
    (99, "Ultimate Legend", 100, "Highest achievement possible!"),
    (90, "Legendary", 95, "Among the elite learners!"),
    (80, "Master", 90, "Exceptional dedication!"),
    (70, "Expert", 80, "Advanced learning skills!"),
    (60, "Advanced", 70, "Impressive progress!"),
    (50, "Skilled", 60, "Halfway to mastery!"),
    (40, "Developing", 50, "Strong foundation building!"),
    (30, "Growing", 40, "Consistent improvement!"),
    (20, "Learning", 30, "Building momentum!"),
    (10, "Emerging", 20, "Good early progress!"),
]


def level_ranking(level: int) -> Dict:
    for floor, rank, percentile, description in _RANKINGS:
        if level >= floor:
            return {"rank": rank, "percentile": percentile, "description": description}
    return {"rank": "Beginner", "percentile": 0, "description": "Just starting the journey!"}


def daily_xp_target(current_xp: int, target_level: int, days: int) -> Dict:
    """XP per day (and exams per day) needed to reach target_level within days."""
    if days <= 0:
        raise ValueError("days must be positive")
    needed = max(0, total_xp_for_level(target_level) - current_xp)
    daily = math.ceil(needed / days)
    exams = math.ceil(daily / AVG_XP_PER_EXAM)
    return {"daily_xp": daily, "is_achievable": exams <= 3, "recommended_exams": exams}

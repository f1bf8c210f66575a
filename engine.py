"""Pure exam constants: modes, grade adjacency, XP rewards. No UI."""
# Score = round(100 * correct / total)
# XP = correct * 10 + bonus (100 for a perfect score, 50 for >= 90, 25 for >= 80)

SUBJECTS = ("Bahasa Melayu", "English", "Mathematics", "Science", "History")

MODE_CONFIG = {
    "Easy": {"question_count": 10, "time_minutes": 15, "types": ("MCQ",)},
    "Medium": {"question_count": 20, "time_minutes": 30, "types": ("MCQ", "ShortAnswer")},
    "Full": {"question_count": 40, "time_minutes": 60, "types": ("MCQ", "ShortAnswer", "Subjective", "Matching")},
}

# Lower grades recycle foundational content; primary (Darjah) never leaks into secondary (Tingkatan).
ALLOWED_LEVELS = {
    "Darjah 1": ("Darjah 1",),
    "Darjah 2": ("Darjah 1", "Darjah 2"),
    "Darjah 3": ("Darjah 1", "Darjah 2", "Darjah 3"),
    "Darjah 4": ("Darjah 4",),
    "Darjah 5": ("Darjah 4", "Darjah 5"),
    "Darjah 6": ("Darjah 4", "Darjah 5", "Darjah 6"),
    "Tingkatan 1": ("Tingkatan 1",),
    "Tingkatan 2": ("Tingkatan 2",),
    "Tingkatan 3": ("Tingkatan 3",),
    "Tingkatan 4": ("Tingkatan 4",),
    "Tingkatan 5": ("Tingkatan 5",),
}

OVERSAMPLE_FACTOR = 2

XP_PER_CORRECT = 10
XP_BONUS_PERFECT = 100
XP_BONUS_90 = 50
XP_BONUS_80 = 25

FUZZY_THRESHOLD = 2
PERSIST_MAX_ATTEMPTS = 3
PERSIST_BACKOFF_SECONDS = 1.0
TIMER_INTERVAL_SECONDS = 1.0
CONNECTIVITY_POLL_SECONDS = 30

SESSION_SNAPSHOT_VERSION = 1
SNAPSHOT_NAMESPACE = "exam-state"
OFFLINE_NAMESPACE = "offline-exams"
OFFLINE_QUEUE_KEY = "queue"

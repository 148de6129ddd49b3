"""
Configuration module for timetable and exam generation
Contains all constants, colors, and configuration loading functions
"""

import json
from datetime import time
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
PROJECT_DIR = BASE_DIR.parent
DATA_DIR = PROJECT_DIR / "data"
OUTPUT_DIR = PROJECT_DIR / "output"
CONFIG_PATH = DATA_DIR / "config.json"


def load_config(path=CONFIG_PATH):
    """Load overrides from config.json, empty dict if missing or unreadable"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        print(f"⚠️ Warning: could not parse {path}: {e}. Using defaults.")
        return {}


_overrides = load_config()

# Time Constants
DAYS = _overrides.get("days", ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday'])

# Usable teaching slots; the gaps 10:30-10:45 and 13:15-14:00 are breaks
TIME_SLOTS = [
    (time(9, 0), time(10, 0)),
    (time(10, 0), time(10, 30)),
    (time(10, 45), time(11, 0)),
    (time(11, 0), time(12, 0)),
    (time(12, 0), time(12, 15)),
    (time(12, 15), time(12, 30)),
    (time(12, 30), time(13, 15)),
    (time(14, 0), time(14, 30)),
    (time(14, 30), time(15, 30)),
    (time(15, 30), time(15, 40)),
    (time(15, 40), time(16, 0)),
    (time(16, 0), time(16, 30)),
    (time(16, 30), time(17, 10)),
    (time(17, 10), time(17, 30)),
    (time(17, 30), time(18, 30)),
]
BLOCK_NAMES = ['morning', 'late-morning', 'afternoon']

# Elective windows, never available to regular sessions
ELECTIVE_SLOTS = {
    'Tuesday': [(time(17, 10), time(17, 30)), (time(17, 30), time(18, 30))],
    'Thursday': [(time(17, 10), time(17, 30)), (time(17, 30), time(18, 30))],
}
ELECTIVE_RESERVED = "ELECTIVE_RESERVED"

# Duration constants (minutes)
LECTURE_MIN = _overrides.get("LECTURE_MIN", 90)
TUTORIAL_MIN = _overrides.get("TUTORIAL_MIN", 60)
LAB_MIN = _overrides.get("LAB_MIN", 120)
SLOT_TOLERANCE_MIN = _overrides.get("SLOT_TOLERANCE_MIN", 5)

# session type -> (minutes per session, sessions per week)
SESSION_RULES = {
    'Lecture': (LECTURE_MIN, 2),
    'Tutorial': (TUTORIAL_MIN, 1),
    'Lab': (LAB_MIN, 1),
}

# Attempt budgets
ATTEMPT_FACTOR = 3
LAB_ATTEMPTS_PER_DAY = 50
LAB_STAGE_SHARES = (0.3, 0.6)

# Room policy
LARGE_ROOM_CAPACITY = _overrides.get("LARGE_ROOM_CAPACITY", 100)

# Semester split
FIRST_HALF = 'First_Half'
SECOND_HALF = 'Second_Half'
FIRST_HALF_MIN_CREDITS = _overrides.get("FIRST_HALF_MIN_CREDITS", 3)
FULL_SEMESTER_POLICY = _overrides.get("FULL_SEMESTER_POLICY", "credit_threshold")
DEFAULT_CREDITS = 3

# Exam constants
EXAM_EPOCH = 'Exam_Period'
STUDENTS_PER_ROOM = _overrides.get("STUDENTS_PER_ROOM", 30)
DEFAULT_EXAM_STUDENTS = 30
REST_DAY = _overrides.get("REST_DAY", 'Sunday')
EXAM_SLOTS = _overrides.get("EXAM_SLOTS", ['FN: 09:00 AM - 12:00 PM', 'AN: 02:00 PM - 05:00 PM'])
EXAM_ATTEMPT_FACTOR = 2

# Excel formatting colors
HEADER_FILL_COLOR = "FFD700"
LEC_FILL_COLOR = "E6E6FA"
LAB_FILL_COLOR = "98FB98"
TUT_FILL_COLOR = "FFE4E1"
ELECTIVE_FILL_COLOR = "D3D3D3"
UNSCHEDULED_FILL_COLOR = "FFE0E0"
WARNING_FILL_COLOR = "FFF4CC"

"""
Utility functions for timetable generation
Contains record types, input normalisation, error kinds and candidate samplers
"""

import random
from dataclasses import dataclass, field, replace

import pandas as pd

import config


class InvalidInputError(ValueError):
    """Malformed input; raised before anything is placed"""


# ---------------------------
# Records
# ---------------------------
@dataclass(frozen=True, order=True)
class StudentGroup:
    branch: str
    year: int
    section: str = ''

    @property
    def label(self):
        if self.section:
            return f"{self.branch}-{self.year}-{self.section}"
        return f"{self.branch}-{self.year}"


@dataclass
class Course:
    code: str
    name: str
    faculty: tuple
    session_type: str
    branch: str
    year: int = 1
    section: str = ''
    credits: float = config.DEFAULT_CREDITS
    semester_half: str = '0'
    combined_sections: frozenset = frozenset()

    @property
    def faculty_label(self):
        return "/".join(self.faculty) if self.faculty else "TBD"

    @property
    def is_lab(self):
        return self.session_type == 'Lab'

    @property
    def is_combined(self):
        return len(self.combined_sections) > 1

    @property
    def minutes(self):
        return config.SESSION_RULES[self.session_type][0]

    @property
    def sessions_needed(self):
        return config.SESSION_RULES[self.session_type][1]

    @property
    def group(self):
        return StudentGroup(self.branch, self.year, self.section)

    def student_groups(self):
        """Groups occupied by this course; one per member section when combined"""
        if self.is_combined:
            return tuple(StudentGroup(self.branch, self.year, s) for s in sorted(self.combined_sections))
        return (self.group,)


@dataclass
class Room:
    number: str
    capacity: int = 0
    kind: str = 'classroom'

    @property
    def is_lab(self):
        return 'lab' in self.kind.lower()

    @property
    def is_classroom(self):
        return 'class' in self.kind.lower()


@dataclass
class Faculty:
    name: str
    department: str = ''
    availability: tuple = ()


@dataclass
class ExamCourse:
    code: str
    name: str
    credits: int
    branch: str
    year: int
    students: int = config.DEFAULT_EXAM_STUDENTS
    course_type: str = 'Theory'
    faculty: str = ''

    @property
    def is_theory(self):
        return self.course_type.strip().lower() == 'theory'


@dataclass(frozen=True)
class ShortageWarning:
    """Structural resource shortage detected before or during a run"""
    scope: str
    message: str

    def __str__(self):
        return f"[{self.scope}] {self.message}"


@dataclass
class UnscheduledComponent:
    """Class to track unscheduled course components and exams"""
    kind: str
    code: str
    name: str
    faculty: str
    component_type: str
    session: str
    group: str
    semester_half: str
    reason: str = ''

    def to_record(self):
        return {
            'kind': self.kind,
            'code': self.code,
            'name': self.name,
            'faculty': self.faculty,
            'type': self.component_type,
            'session': self.session,
            'group': self.group,
            'semesterHalf': self.semester_half,
            'reason': self.reason or "Could not find suitable slot",
        }


# ---------------------------
# Normalisation helpers
# ---------------------------
def clean_text(value):
    if value is None:
        return ''
    if not isinstance(value, (list, tuple, set, frozenset)) and pd.isna(value):
        return ''
    s = str(value).strip()
    return '' if s.lower() in ('nan', 'none') else s


def _pick(record, *keys):
    for key in keys:
        if key in record:
            value = clean_text(record[key])
            if value:
                return value
    return ''


def split_faculty_names(faculty_field):
    if isinstance(faculty_field, (list, tuple)):
        return [clean_text(f) for f in faculty_field if clean_text(f)]
    s = clean_text(faculty_field)
    if not s:
        return []
    for sep in ['/', ',', '&', ';']:
        s = s.replace(sep, '/')
    return [part.strip() for part in s.split('/') if part.strip()]


def select_faculty(faculty_field):
    names = split_faculty_names(faculty_field)
    return names[0] if names else "TBD"


def split_sections(value):
    if isinstance(value, (set, frozenset, list, tuple)):
        parts = value
    else:
        text = clean_text(value)
        for sep in [',', '/', '&', '+']:
            text = text.replace(sep, ';')
        parts = text.split(';')
    return frozenset(clean_text(p).upper() for p in parts if clean_text(p))


def to_int(value, default):
    text = clean_text(value)
    if not text:
        return default
    try:
        return int(float(text))
    except ValueError:
        return default


def to_float(value, default):
    text = clean_text(value)
    if not text:
        return default
    try:
        return float(text)
    except ValueError:
        return default


def normalize_session_type(value):
    text = clean_text(value).lower() or 'lecture'
    if 'lab' in text or 'practical' in text:
        return 'Lab'
    if text.startswith('tut'):
        return 'Tutorial'
    if text.startswith('lec') or text == 'theory':
        return 'Lecture'
    raise InvalidInputError(f"Unknown session type '{value}'")


def normalize_semester_half(value):
    text = clean_text(value).lower()
    if not text or text in ('full', 'both'):
        return '0'
    if text in ('first', 'first_half', 'firsthalf'):
        return '1'
    if text in ('second', 'second_half', 'secondhalf'):
        return '2'
    try:
        half = str(int(float(text)))
    except ValueError:
        raise InvalidInputError(f"Malformed semester half flag '{value}'")
    if half not in ('0', '1', '2'):
        raise InvalidInputError(f"Malformed semester half flag '{value}'")
    return half


def course_from_record(record):
    """Build a Course from a raw CSV/dict record, or normalise an existing Course"""
    if isinstance(record, Course):
        if not record.code or not record.branch:
            raise InvalidInputError(f"Course {record.code or '?'} needs a code and a branch")
        return replace(
            record,
            faculty=tuple(record.faculty),
            session_type=normalize_session_type(record.session_type),
            semester_half=normalize_semester_half(record.semester_half),
            combined_sections=frozenset(record.combined_sections),
        )
    code = _pick(record, 'code', 'Course Code')
    branch = _pick(record, 'branch', 'Branch', 'Department')
    if not code:
        raise InvalidInputError(f"Course record without a code: {dict(record)}")
    if not branch:
        raise InvalidInputError(f"Course {code} has no branch")

    section = _pick(record, 'section', 'Section').upper()
    combined = split_sections(record.get('combined', record.get('combinedSections', '')))
    if combined and section:
        combined = combined | {section}
    if len(combined) < 2:
        combined = frozenset()

    return Course(
        code=code,
        name=_pick(record, 'name', 'Course Name') or code,
        faculty=tuple(split_faculty_names(record.get('faculty', record.get('Faculty')))),
        session_type=normalize_session_type(record.get('type', record.get('Type'))),
        branch=branch,
        year=to_int(record.get('year', record.get('Year')), 1),
        section=section,
        credits=to_float(record.get('credits', record.get('Credits')), config.DEFAULT_CREDITS),
        semester_half=normalize_semester_half(record.get('semesterHalf', record.get('semester_half'))),
        combined_sections=combined,
    )


def room_from_record(record):
    if isinstance(record, Room):
        return record
    number = _pick(record, 'number', 'roomNumber', 'room', 'Room')
    if not number:
        raise InvalidInputError(f"Room record without a number: {dict(record)}")
    return Room(
        number=number,
        capacity=to_int(record.get('capacity', record.get('Capacity')), 0),
        kind=_pick(record, 'type', 'kind', 'Type') or 'classroom',
    )


def faculty_from_record(record):
    if isinstance(record, Faculty):
        return record
    if isinstance(record, str):
        return Faculty(name=record.strip())
    name = _pick(record, 'name', 'Name')
    if not name:
        raise InvalidInputError(f"Faculty record without a name: {dict(record)}")
    availability = record.get('availability', '')
    if isinstance(availability, (list, tuple)):
        days = [clean_text(d) for d in availability]
    else:
        days = clean_text(availability).replace(',', ';').split(';')
    return Faculty(
        name=name,
        department=_pick(record, 'department', 'Department'),
        availability=tuple(d.strip().title() for d in days if d.strip()),
    )


def exam_course_from_record(record):
    if isinstance(record, ExamCourse):
        return record
    code = _pick(record, 'code', 'Course Code')
    if not code:
        raise InvalidInputError(f"Exam course record without a code: {dict(record)}")
    return ExamCourse(
        code=code,
        name=_pick(record, 'name', 'Course Name') or code,
        credits=to_int(record.get('credits'), 0),
        branch=_pick(record, 'branch', 'Branch') or 'Unknown',
        year=to_int(record.get('year'), 1),
        students=to_int(record.get('students'), config.DEFAULT_EXAM_STUDENTS),
        course_type=_pick(record, 'type', 'Type') or 'Theory',
        faculty=select_faculty(record.get('faculty', '')) if _pick(record, 'faculty') else '',
    )


def invigilator_name(record):
    if isinstance(record, str):
        return record.strip()
    if isinstance(record, Faculty):
        return record.name
    name = _pick(record, 'name', 'Name')
    if not name:
        raise InvalidInputError(f"Invigilator record without a name: {dict(record)}")
    return name


# ---------------------------
# Candidate samplers
# ---------------------------
class RandomSampler:
    """Independent random pick from each pool on every draw"""

    def __init__(self, seed=None):
        self._rng = random.Random(seed)

    def start(self):
        pass

    def draw(self, *pools):
        return tuple(self._rng.choice(pool) for pool in pools)

    def order(self, pool):
        pool = list(pool)
        self._rng.shuffle(pool)
        return pool


class ExhaustiveSampler:
    """Deterministic odometer over the product of the pools.

    `start()` rewinds the counter; the first len(a)*len(b)*... draws after it
    visit every combination exactly once, last pool varying fastest.
    """

    def __init__(self):
        self._counter = 0

    def start(self):
        self._counter = 0

    def draw(self, *pools):
        idx = self._counter
        self._counter += 1
        picks = []
        for pool in reversed(pools):
            picks.append(pool[idx % len(pool)])
            idx //= len(pool)
        return tuple(reversed(picks))

    def order(self, pool):
        return list(pool)


@dataclass
class RunLog:
    """Console progress for one run, silenced when verbose is off"""
    verbose: bool = True
    warnings: list = field(default_factory=list)

    def info(self, message):
        if self.verbose:
            print(message)

    def warn(self, scope, message):
        warning = ShortageWarning(scope, message)
        if warning not in self.warnings:
            self.warnings.append(warning)
            if self.verbose:
                print(f"⚠️ Warning: {warning}")
        return warning

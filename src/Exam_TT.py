"""
Exam_TT.py - Exam timetable generation

Rules:
    - 1 exam per day per branch-year combination
    - ceil(students / STUDENTS_PER_ROOM) rooms per exam
    - 1 invigilator per room
    - different branches/years may share a date and slot
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

import config
from conflicts import ConflictIndex, FACULTY, ROOM
from utils import (InvalidInputError, RunLog, UnscheduledComponent,
                   exam_course_from_record, invigilator_name, room_from_record)

DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d-%b-%Y")


@dataclass(frozen=True)
class ExamDate:
    iso: str
    display: str
    weekday: str


@dataclass(frozen=True)
class ExamAssignment:
    date: str
    display_date: str
    day: str
    slot: str
    code: str
    name: str
    credits: int
    branch: str
    year: int
    students: int
    rooms: tuple
    invigilators: tuple

    @property
    def pairs(self):
        return list(zip(self.rooms, self.invigilators))

    def to_record(self):
        return {
            'date': self.date,
            'displayDate': self.display_date,
            'day': self.day,
            'timeSlot': self.slot,
            'courseCode': self.code,
            'courseName': self.name,
            'credits': self.credits,
            'branch': self.branch,
            'year': self.year,
            'students': self.students,
            'rooms': list(self.rooms),
            'invigilators': list(self.invigilators),
            'roomInvigilatorPairs': [{'room': r, 'invigilator': i} for r, i in self.pairs],
        }


@dataclass
class ExamScheduleResult:
    assignments: list = field(default_factory=list)
    unscheduled: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def to_records(self):
        return [a.to_record() for a in self.assignments]

    def summary(self):
        return {
            'placed': len(self.assignments),
            'unscheduled': len(self.unscheduled),
            'warnings': len(self.warnings),
        }


def parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise InvalidInputError(f"Could not parse date '{value}' (expected YYYY-MM-DD)")


def generate_exam_dates(start_date, end_date, rest_day=None, holidays=()):
    """
    Every date from start to end inclusive except the weekly rest day and
    holidays, as ascending ExamDate(iso, 'DD-Mon-YYYY', weekday) triples.
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start > end:
        raise InvalidInputError(f"Exam period starts ({start}) after it ends ({end})")
    rest_day = (rest_day or config.REST_DAY).strip().title()
    skip = {parse_date(h) for h in holidays}

    exam_dates = []
    current = start
    while current <= end:
        weekday = current.strftime("%A")
        if weekday != rest_day and current not in skip:
            exam_dates.append(ExamDate(current.isoformat(), current.strftime("%d-%b-%Y"), weekday))
        current += timedelta(days=1)
    return exam_dates


def rooms_needed(students, students_per_room=None):
    per_room = students_per_room or config.STUDENTS_PER_ROOM
    return max(1, math.ceil(students / per_room))


def order_courses(courses, order='credits'):
    """Heaviest exams first so they get the earliest pick of dates"""
    if order == 'credits':
        return sorted(courses, key=lambda c: (-c.credits, -c.students))
    if order == 'students':
        return sorted(courses, key=lambda c: -c.students)
    raise InvalidInputError(f"Unknown exam ordering '{order}'")


def _room_number(record):
    if isinstance(record, str):
        return record.strip()
    return room_from_record(record).number


def generate_exam_schedule(exam_courses, invigilators, rooms, date_range=None,
                           slot_labels=None, dates=None, order='credits',
                           students_per_room=None, verbose=True):
    """
    Place one exam per theory course on a (date, slot) with enough rooms and
    invigilators.

    Args:
        exam_courses: ExamCourse objects or raw records
        invigilators: names, Faculty objects or records with a 'name'
        rooms: room numbers, Room objects or records
        date_range: (start, end) pair fed to generate_exam_dates
        slot_labels: exam slots per day (defaults to forenoon/afternoon)
        dates: pre-built ExamDate list, used instead of date_range
        order: 'credits' (credits then students) or 'students'

    Returns:
        ExamScheduleResult
    """
    log = RunLog(verbose)
    per_room = students_per_room or config.STUDENTS_PER_ROOM
    courses = [exam_course_from_record(c) for c in exam_courses]
    invigilators = [n for n in dict.fromkeys(invigilator_name(i) for i in invigilators) if n]
    room_numbers = list(dict.fromkeys(_room_number(r) for r in rooms))
    slot_labels = list(slot_labels or config.EXAM_SLOTS)
    if dates is None:
        if date_range is None:
            raise InvalidInputError("Either a date range or a list of exam dates is required")
        dates = generate_exam_dates(*date_range)
    dates = list(dates)

    if not dates:
        raise InvalidInputError("The exam period contains no usable dates")
    if not slot_labels:
        raise InvalidInputError("At least one exam slot per day is required")
    if not room_numbers:
        raise InvalidInputError("No exam rooms supplied")
    if not invigilators:
        raise InvalidInputError("No invigilators supplied")

    theory = [c for c in courses if c.is_theory]
    skipped = len(courses) - len(theory)
    if skipped:
        log.info(f"Skipping {skipped} non-theory course(s)")

    groups = defaultdict(list)
    for course in theory:
        groups[(course.branch, course.year)].append(course)

    # Structural shortages
    for (branch, year), group_courses in sorted(groups.items()):
        if len(group_courses) > len(dates):
            log.warn('dates', f"{branch} Year {year} has {len(group_courses)} exams "
                              f"but only {len(dates)} exam dates")
    for course in theory:
        needed = rooms_needed(course.students, per_room)
        if needed > len(room_numbers):
            log.warn('rooms', f"{course.code} needs {needed} rooms but only {len(room_numbers)} exist")
        if needed > len(invigilators):
            log.warn('invigilators', f"{course.code} needs {needed} invigilators "
                                     f"but only {len(invigilators)} exist")

    index = ConflictIndex()
    used_dates = set()
    result = ExamScheduleResult()
    max_attempts = len(dates) * len(slot_labels) * config.EXAM_ATTEMPT_FACTOR

    log.info('\n=== Scheduling Exams for All Branches & Years ===')
    for (branch, year) in sorted(groups):
        group_courses = order_courses(groups[(branch, year)], order)
        log.info(f"\n=== {branch} - Year {year} ({len(group_courses)} courses) ===")
        date_index = 0

        for course in group_courses:
            needed = rooms_needed(course.students, per_room)
            assignment = None
            for attempt in range(max_attempts):
                exam_date = dates[(date_index + attempt // len(slot_labels)) % len(dates)]
                slot = slot_labels[attempt % len(slot_labels)]
                if (branch, year, exam_date.iso) in used_dates:
                    continue

                free_rooms = [r for r in room_numbers
                              if index.is_free(ROOM, r, exam_date.iso, slot, config.EXAM_EPOCH)]
                free_invigilators = [i for i in invigilators
                                     if index.is_free(FACULTY, i, exam_date.iso, slot, config.EXAM_EPOCH)]
                if course.faculty in free_invigilators:
                    free_invigilators.remove(course.faculty)
                    free_invigilators.insert(0, course.faculty)
                if len(free_rooms) < needed or len(free_invigilators) < needed:
                    continue

                chosen_rooms = tuple(free_rooms[:needed])
                chosen_invigilators = tuple(free_invigilators[:needed])
                if not index.try_reserve(exam_date.iso, [slot], config.EXAM_EPOCH,
                                         faculty=chosen_invigilators, rooms=chosen_rooms,
                                         holder=course.code):
                    continue
                used_dates.add((branch, year, exam_date.iso))
                assignment = ExamAssignment(
                    date=exam_date.iso, display_date=exam_date.display, day=exam_date.weekday,
                    slot=slot, code=course.code, name=course.name, credits=course.credits,
                    branch=branch, year=year, students=course.students,
                    rooms=chosen_rooms, invigilators=chosen_invigilators,
                )
                date_index = (date_index + 1) % len(dates)
                break

            if assignment:
                result.assignments.append(assignment)
                log.info(f"  ✓ {course.code} ({course.credits} cr) - {assignment.display_date} {assignment.slot}")
            else:
                log.info(f"  ✗ FAILED: {course.code} - {course.name} (Not enough resources)")
                result.unscheduled.append(UnscheduledComponent(
                    kind='exam', code=course.code, name=course.name, faculty=course.faculty,
                    component_type=course.course_type, session='Exam',
                    group=f"{branch}-{year}", semester_half=config.EXAM_EPOCH,
                    reason=f"No date/slot with {needed} free room(s) and invigilator(s)",
                ))

    result.warnings = list(log.warnings)
    log.info("\n=== Exam Scheduling Summary ===")
    log.info(f"✅ Total exams scheduled: {len(result.assignments)}")
    if result.unscheduled:
        log.info(f"⚠️ Exams left unscheduled: {len(result.unscheduled)}")
    return result


def validate_exam_schedule(assignments, students_per_room=None):
    """Return a list of violations (empty when valid)"""
    violations = []
    group_dates = set()
    booked = set()
    for a in assignments:
        key = (a.branch, a.year, a.date)
        if key in group_dates:
            violations.append(f"{a.branch} Year {a.year} has two exams on {a.date}")
        group_dates.add(key)

        needed = rooms_needed(a.students, students_per_room)
        if not (len(a.rooms) == len(a.invigilators) == needed):
            violations.append(f"{a.code} has {len(a.rooms)} rooms / {len(a.invigilators)} "
                              f"invigilators, expected {needed}")
        for kind, names in (('room', a.rooms), ('invigilator', a.invigilators)):
            for name in names:
                slot_key = (kind, name, a.date, a.slot)
                if slot_key in booked:
                    violations.append(f"{kind} {name} double-booked on {a.date} {a.slot}")
                booked.add(slot_key)
    return violations

"""
Class timetable generation
Places lectures, tutorials and labs for every cohort in each semester half
without faculty, room or student-group clashes.
"""

from collections import defaultdict
from dataclasses import dataclass, field

import config
from conflicts import ConflictIndex, GROUP
from time_slots import (combinations_for, consecutive_windows, adjacent_pairs,
                        elective_slots, is_elective_slot, overlaps, TIME_SLOTS)
from utils import (InvalidInputError, RandomSampler, RunLog, UnscheduledComponent,
                   course_from_record, room_from_record, faculty_from_record)


@dataclass(frozen=True)
class Session:
    day: str
    combination: object
    code: str
    name: str
    label: str
    session_type: str
    room: str
    faculty: tuple
    groups: tuple
    branch: str
    year: int
    semester_half: str
    combined: bool = False
    method: str = ''

    @property
    def slots(self):
        return self.combination.slots

    @property
    def section(self):
        return '+'.join(g.section for g in self.groups if g.section)

    @property
    def faculty_label(self):
        return "/".join(self.faculty) if self.faculty else "TBD"

    def to_record(self):
        return {
            'day': self.day,
            'timeSlot': self.combination.label,
            'slots': [s.label for s in self.slots],
            'code': self.code,
            'course': f"{self.name} - {self.label}",
            'session': self.label,
            'faculty': self.faculty_label,
            'room': self.room,
            'type': self.session_type,
            'branch': self.branch,
            'year': self.year,
            'section': self.section,
            'semesterHalf': self.semester_half,
            'combined': self.combined,
        }

    def to_rows(self):
        """One row per catalog slot, the layout of the exported CSV"""
        rows = []
        n = len(self.slots)
        for idx, slot in enumerate(self.slots):
            row = self.to_record()
            del row['slots']
            row['timeSlot'] = slot.label
            if n > 1:
                row['course'] += f" ({idx + 1}/{n})"
            rows.append(row)
        return rows


@dataclass
class ClassTimetableResult:
    sessions: list = field(default_factory=list)
    unscheduled: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def to_records(self):
        return [s.to_record() for s in self.sessions]

    def to_rows(self):
        return [row for s in self.sessions for row in s.to_rows()]

    def for_half(self, semester_half):
        return [s for s in self.sessions if s.semester_half == semester_half]

    def summary(self):
        return {
            'placed': len(self.sessions),
            'unscheduled': len(self.unscheduled),
            'warnings': len(self.warnings),
        }


# ---------------------------
# Semester split
# ---------------------------
def split_by_semester_half(courses, policy=None, min_credits=None):
    """
    First half: flag '1', or flag '0' with enough credits.
    Second half: flag '2' or flag '0'.
    With policy 'both_halves' every unflagged course runs in both halves.
    """
    policy = policy or config.FULL_SEMESTER_POLICY
    min_credits = config.FIRST_HALF_MIN_CREDITS if min_credits is None else min_credits
    if policy not in ('credit_threshold', 'both_halves'):
        raise InvalidInputError(f"Unknown full-semester policy '{policy}'")

    def in_first(c):
        if c.semester_half == '1':
            return True
        if c.semester_half == '0':
            return policy == 'both_halves' or c.credits >= min_credits
        return False

    first = [c for c in courses if in_first(c)]
    second = [c for c in courses if c.semester_half in ('2', '0')]
    return first, second


def session_label(session_type, number, total):
    if total > 1:
        return f"{session_type} {number} of {total}"
    return session_type


# ---------------------------
# One semester-half run
# ---------------------------
class TimetableRun:
    """Placement state for a single semester half; nothing is shared across runs"""

    def __init__(self, rooms, semester_half, faculty=(), sampler=None,
                 attempt_factor=config.ATTEMPT_FACTOR, log=None):
        self.rooms = rooms
        self.semester_half = semester_half
        self.sampler = sampler or RandomSampler()
        self.attempt_factor = attempt_factor
        self.log = log or RunLog()
        self.index = ConflictIndex()
        self.days = list(config.DAYS)
        self.sessions = []
        self.unscheduled = []
        self.course_days = defaultdict(set)
        self.roster = {f.name: f for f in faculty}

    # --- Init ---
    def reserve_electives(self, groups):
        for group in groups:
            for day in self.days:
                self.index.seed(GROUP, group, day, elective_slots(day), self.semester_half)

    # --- Rooms ---
    def eligible_rooms(self, course):
        if course.is_lab:
            pool = [r for r in self.rooms if r.is_lab]
            kind = 'lab'
        else:
            pool = [r for r in self.rooms if r.is_classroom]
            kind = 'classroom'
        if not pool:
            self.log.warn('rooms', f"No {kind} rooms available; {kind} sessions may use any room")
            pool = list(self.rooms)
        return pool

    def large_rooms(self, course):
        """Rooms for a combined session, largest first"""
        pool = sorted(self.eligible_rooms(course), key=lambda r: r.capacity, reverse=True)
        big = [r for r in pool if r.capacity >= config.LARGE_ROOM_CAPACITY]
        if big:
            return big
        largest = max(self.rooms, key=lambda r: r.capacity)
        self.log.warn('rooms', f"No room with capacity >= {config.LARGE_ROOM_CAPACITY} for combined "
                               f"{course.code}; using largest room {largest.number} ({largest.capacity})")
        return [largest]

    # --- Days ---
    def candidate_days(self, course, course_key):
        used = self.course_days[course_key]
        days = [d for d in self.days if d not in used]
        for name in course.faculty:
            member = self.roster.get(name)
            if member and member.availability:
                days = [d for d in days if d in member.availability]
        return days

    # --- Placement ---
    def place_session(self, course, groups, number, stages, rooms, budget):
        """
        Try (day, combination) candidates stage by stage until one can be
        reserved for faculty, a room and every group, or the budget runs out.
        Each attempt is one (day, combination) pair with every eligible room
        tried in sampler order.
        `stages` is a list of (name, combinations_for_day, share_of_budget).
        """
        course_key = (groups, course.code)
        label = session_label(course.session_type, number, course.sessions_needed)
        group_label = "+".join(g.label for g in groups)
        days = self.candidate_days(course, course_key)
        if not days:
            self._unplaced(course, label, group_label, "No free day left for this course")
            return None

        attempts = 0
        tried = False
        for stage_name, combos_for_day, share in stages:
            limit = int(budget * share)
            candidates = [(d, c) for d in days for c in combos_for_day(d)]
            if not candidates:
                attempts = max(attempts, limit)
                continue
            tried = True
            self.sampler.start()
            while attempts < limit:
                attempts += 1
                (day, combo), = self.sampler.draw(candidates)
                for room in self.sampler.order(rooms):
                    if not self.index.try_reserve(day, combo.slots, self.semester_half,
                                                  faculty=course.faculty, rooms=(room.number,),
                                                  groups=groups, holder=(course.code, label)):
                        continue
                    session = Session(
                        day=day, combination=combo, code=course.code, name=course.name,
                        label=label, session_type=course.session_type, room=room.number,
                        faculty=course.faculty, groups=groups, branch=course.branch,
                        year=course.year, semester_half=self.semester_half,
                        combined=len(groups) > 1, method=stage_name,
                    )
                    self.sessions.append(session)
                    self.course_days[course_key].add(day)
                    self.log.info(f"  ✓ {course.code} {label} - {day} {combo.label} "
                                  f"in {room.number} ({stage_name})")
                    return session

        if not tried:
            reason = f"No slot combination matches {course.minutes} min"
        else:
            reason = f"No conflict-free slot after {attempts} attempts"
        self._unplaced(course, label, group_label, reason)
        return None

    def _unplaced(self, course, label, group_label, reason):
        self.log.info(f"  ✗ Could not assign {course.code} {label} for {group_label}: {reason}")
        self.unscheduled.append(UnscheduledComponent(
            kind='class', code=course.code, name=course.name, faculty=course.faculty_label,
            component_type=course.session_type, session=label, group=group_label,
            semester_half=self.semester_half, reason=reason,
        ))

    def regular_stages(self, course):
        combos = combinations_for(course.minutes)
        return [('exact', lambda day: combos, 1.0)], len(self.days) * len(combos) * self.attempt_factor

    def lab_stages(self, course):
        exact = combinations_for(course.minutes)
        windows = consecutive_windows()
        first, second = config.LAB_STAGE_SHARES
        stages = [
            (f'{course.minutes}min-combination', lambda day: exact, first),
            ('consecutive-slots', lambda day: windows, second),
            ('any-2-slots', adjacent_pairs, 1.0),
        ]
        return stages, len(self.days) * config.LAB_ATTEMPTS_PER_DAY

    def schedule_course(self, course, groups, rooms):
        if course.is_lab:
            stages, budget = self.lab_stages(course)
        else:
            stages, budget = self.regular_stages(course)
        for number in range(1, course.sessions_needed + 1):
            self.place_session(course, groups, number, stages, rooms, budget)


def _check_demand(cohort_courses, log, semester_half):
    """Warn when a cohort needs more teaching minutes than the week offers"""
    per_day = sum(s.minutes for s in TIME_SLOTS)
    capacity = sum(per_day - sum(s.minutes for s in elective_slots(d)) for d in config.DAYS)
    for group, courses in cohort_courses.items():
        demand = sum(c.minutes * c.sessions_needed for c in courses)
        if demand > capacity:
            log.warn('demand', f"{group.label} ({semester_half}) needs {demand} min/week "
                               f"but only {capacity} min are available")


def schedule_half(courses, faculty, rooms, semester_half, sampler=None,
                  attempt_factor=config.ATTEMPT_FACTOR, log=None):
    """Generate the timetable for one semester half"""
    log = log or RunLog()
    run = TimetableRun(rooms, semester_half, faculty, sampler, attempt_factor, log)
    log.info(f"\n=== Generating {semester_half} Timetable ===")

    # Init
    cohorts = defaultdict(list)
    combined = {}
    every_group = set()
    cohort_load = defaultdict(list)
    for course in courses:
        groups = course.student_groups()
        every_group.update(groups)
        if course.is_combined:
            key = (course.branch, course.year, course.code, course.session_type, course.combined_sections)
            if key not in combined:
                combined[key] = course
                for g in groups:
                    cohort_load[g].append(course)
        else:
            cohorts[course.group].append(course)
            cohort_load[course.group].append(course)
    run.reserve_electives(every_group)
    _check_demand(cohort_load, log, semester_half)

    # PlaceCombinedSections
    if combined:
        log.info(f"\nProcessing {len(combined)} combined-section course(s)")
    for course in sorted(combined.values(), key=lambda c: (not c.is_lab, c.code)):
        run.schedule_course(course, course.student_groups(), run.large_rooms(course))

    # PlaceLabs / PlaceRegularSessions, per cohort
    for group in sorted(cohorts):
        cohort_courses = cohorts[group]
        labs = [c for c in cohort_courses if c.is_lab]
        regular = [c for c in cohort_courses if not c.is_lab]
        log.info(f"\nProcessing {group.label}: {len(cohort_courses)} courses "
                 f"(labs: {len(labs)}, regular: {len(regular)})")
        for course in labs:
            run.schedule_course(course, (group,), run.eligible_rooms(course))
        for course in regular:
            run.schedule_course(course, (group,), run.eligible_rooms(course))

    return run.sessions, run.unscheduled


def _validate_inputs(courses, faculty, rooms):
    courses = [course_from_record(c) for c in courses]
    rooms = [room_from_record(r) for r in rooms]
    faculty = [faculty_from_record(f) for f in faculty or []]
    if not rooms:
        raise InvalidInputError("No rooms supplied; cannot build a timetable")
    numbers = [r.number for r in rooms]
    duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
    if duplicates:
        raise InvalidInputError(f"Duplicate room numbers: {', '.join(duplicates)}")
    for member in faculty:
        unknown = [d for d in member.availability if d not in config.DAYS]
        if unknown:
            raise InvalidInputError(f"Faculty {member.name} lists unknown days: {', '.join(unknown)}")
    return courses, faculty, rooms


def generate_class_timetable(courses, faculty, rooms, sampler=None, policy=None,
                             attempt_factor=config.ATTEMPT_FACTOR, verbose=True):
    """
    Build the class timetable for both semester halves.

    Args:
        courses: Course objects or raw course records
        faculty: Faculty objects, names or raw faculty records (may be empty)
        rooms: Room objects or raw room records
        sampler: candidate sampler (RandomSampler by default)
        policy: 'credit_threshold' or 'both_halves' for unflagged courses

    Returns:
        ClassTimetableResult with placed sessions, unscheduled components and warnings
    """
    courses, faculty, rooms = _validate_inputs(courses, faculty, rooms)
    log = RunLog(verbose)
    first, second = split_by_semester_half(courses, policy)

    log.info("\n=== Course Distribution ===")
    log.info(f"Total courses loaded: {len(courses)}")
    log.info(f"First Half courses: {len(first)}")
    log.info(f"Second Half courses: {len(second)}")

    if faculty:
        roster = {f.name for f in faculty}
        for course in courses:
            for name in course.faculty:
                if name not in roster:
                    log.warn('faculty', f"{name} ({course.code}) is not in the faculty list")

    result = ClassTimetableResult()
    for semester_half, half_courses in ((config.FIRST_HALF, first), (config.SECOND_HALF, second)):
        sessions, unscheduled = schedule_half(half_courses, faculty, rooms, semester_half,
                                              sampler, attempt_factor, log)
        result.sessions.extend(sessions)
        result.unscheduled.extend(unscheduled)
    result.warnings = list(log.warnings)

    log.info("\n=== Generation Summary ===")
    log.info(f"✅ Sessions placed: {len(result.sessions)}")
    if result.unscheduled:
        log.info(f"⚠️ Unscheduled components: {len(result.unscheduled)}")
    return result


# ---------------------------
# Validation
# ---------------------------
def validate_timetable(sessions):
    """Return a list of human readable violations (empty when valid)"""
    violations = []
    for i, a in enumerate(sessions):
        for b in sessions[i + 1:]:
            if a.day != b.day or a.semester_half != b.semester_half:
                continue
            if not any(overlaps(x, y) for x in a.slots for y in b.slots):
                continue
            where = f"{a.day} {a.semester_half}: {a.code} {a.label} / {b.code} {b.label}"
            if set(a.faculty) & set(b.faculty):
                violations.append(f"faculty clash {where}")
            if a.room == b.room:
                violations.append(f"room clash {where}")
            if set(a.groups) & set(b.groups):
                violations.append(f"group clash {where}")

    days_by_course = defaultdict(list)
    for s in sessions:
        days_by_course[(s.groups, s.code, s.semester_half)].append(s.day)
        if any(is_elective_slot(s.day, slot) for slot in s.slots):
            violations.append(f"elective slot used by {s.code} {s.label} on {s.day}")
    for (groups, code, half), days in days_by_course.items():
        if len(days) != len(set(days)):
            violations.append(f"{code} repeats a day in {half}")
    return violations

import pytest

import config
from Class_TT import (generate_class_timetable, split_by_semester_half, validate_timetable,
                      TimetableRun, session_label)
from conflicts import GROUP
from time_slots import TIME_SLOTS, BLOCKS, is_elective_slot
from utils import (Course, Room, Faculty, StudentGroup, InvalidInputError,
                   ExhaustiveSampler, RandomSampler, RunLog, course_from_record)


def make_course(code, session_type='Lecture', faculty=('Dr A',), section='A',
                credits=3, half='0', combined=frozenset(), branch='CSE', year=1):
    return Course(code=code, name=f"{code} name", faculty=tuple(faculty), session_type=session_type,
                  branch=branch, year=year, section=section, credits=credits,
                  semester_half=half, combined_sections=frozenset(combined))


@pytest.fixture
def classroom():
    return Room('C101', 70, 'Classroom')


@pytest.fixture
def lab_room():
    return Room('L1', 40, 'Computer Lab')


# -----------------------------
# Semester split
# -----------------------------
def test_split_credit_threshold():
    full_heavy = make_course('CS101', credits=4)
    full_light = make_course('CS102', credits=2)
    first_only = make_course('CS103', half='1', credits=1)
    second_only = make_course('CS104', half='2', credits=4)
    first, second = split_by_semester_half([full_heavy, full_light, first_only, second_only])
    assert [c.code for c in first] == ['CS101', 'CS103']
    assert [c.code for c in second] == ['CS101', 'CS102', 'CS104']


def test_split_both_halves_policy():
    light = make_course('CS102', credits=1)
    first, second = split_by_semester_half([light], policy='both_halves')
    assert first == [light] and second == [light]


def test_split_rejects_unknown_policy():
    with pytest.raises(InvalidInputError):
        split_by_semester_half([], policy='random')


@pytest.mark.parametrize("session_type, number, total, expected", [
    ('Lecture', 2, 2, 'Lecture 2 of 2'),
    ('Tutorial', 1, 1, 'Tutorial'),
    ('Lab', 1, 1, 'Lab'),
])
def test_session_label(session_type, number, total, expected):
    assert session_label(session_type, number, total) == expected


# -----------------------------
# End-to-end placement
# -----------------------------
def test_lecture_and_tutorial_land_on_three_distinct_days(classroom):
    courses = [make_course('CS101', 'Lecture', half='1'), make_course('CS101', 'Tutorial', half='1')]
    result = generate_class_timetable(courses, [Faculty('Dr A')], [classroom],
                                      sampler=ExhaustiveSampler(), verbose=False)
    assert result.unscheduled == []
    assert len(result.sessions) == 3
    assert len({s.day for s in result.sessions}) == 3
    assert validate_timetable(result.sessions) == []
    assert [s.label for s in result.sessions] == ['Lecture 1 of 2', 'Lecture 2 of 2', 'Tutorial']
    first = result.sessions[0]
    assert (first.day, first.combination.label, first.room) == ('Monday', '09:00 - 10:30', 'C101')


def test_full_semester_course_scheduled_in_each_half(classroom):
    result = generate_class_timetable([make_course('CS101', credits=4)], [], [classroom],
                                      sampler=RandomSampler(1), verbose=False)
    assert len(result.for_half(config.FIRST_HALF)) == 2
    assert len(result.for_half(config.SECOND_HALF)) == 2


@pytest.mark.parametrize("seed", range(5))
def test_repeated_runs_stay_valid(seed, classroom):
    rooms = [classroom, Room('C102', 70, 'Classroom'), Room('L1', 40, 'Lab')]
    courses = [
        make_course('CS101', faculty=['Dr A']),
        make_course('CS101', 'Tutorial', faculty=['Dr A']),
        make_course('MA101', faculty=['Dr M']),
        make_course('CS101', section='B', faculty=['Dr A']),
        make_course('PH101', section='B', faculty=['Dr P', 'Dr Q']),
        make_course('CS111', 'Lab', faculty=['Dr A']),
    ]
    result = generate_class_timetable(courses, [], rooms, sampler=RandomSampler(seed), verbose=False)
    assert validate_timetable(result.sessions) == []
    assert result.unscheduled == []
    assert not any(is_elective_slot(s.day, slot) for s in result.sessions for slot in s.slots)


def test_many_rooms_do_not_exhaust_the_budget():
    rooms = [Room(f'C{200 + i}', 70, 'Classroom') for i in range(20)]
    run = TimetableRun(rooms, config.FIRST_HALF, sampler=ExhaustiveSampler(), log=RunLog(False))
    tutorial = make_course('CS101', 'Tutorial')
    for day in ('Monday', 'Tuesday', 'Wednesday'):
        run.index.seed(GROUP, tutorial.group, day, TIME_SLOTS, config.FIRST_HALF, holder='busy')
    run.schedule_course(tutorial, (tutorial.group,), rooms)
    assert run.unscheduled == []
    (session,) = run.sessions
    assert (session.day, session.combination.label, session.room) == ('Thursday', '09:00 - 10:00', 'C200')


def test_busy_rooms_are_skipped_within_one_attempt():
    rooms = [Room('C101', 70, 'Classroom'), Room('C102', 70, 'Classroom')]
    run = TimetableRun(rooms, config.FIRST_HALF, sampler=ExhaustiveSampler(), log=RunLog(False))
    run.index.try_reserve('Monday', TIME_SLOTS[:2], config.FIRST_HALF, rooms=['C101'], holder='busy')
    lecture = make_course('CS101', half='1')
    run.schedule_course(lecture, (lecture.group,), rooms)
    first = run.sessions[0]
    assert (first.day, first.combination.label, first.room) == ('Monday', '09:00 - 10:30', 'C102')


def test_shared_faculty_never_double_booked(classroom):
    courses = [make_course(f'CS10{i}', section=section, half='1')
               for i, section in enumerate(['A', 'B', 'C'])]
    result = generate_class_timetable(courses, [], [classroom, Room('C102', 70, 'Classroom')],
                                      sampler=RandomSampler(7), verbose=False)
    assert len(result.sessions) == 6
    assert validate_timetable(result.sessions) == []


def test_multi_faculty_course_books_every_member(classroom):
    courses = [make_course('CS101', faculty=['Dr A', 'Dr B'], half='1'),
               make_course('CS102', faculty=['Dr B'], section='B', half='1')]
    result = generate_class_timetable(courses, [], [classroom, Room('C102', 70, 'Classroom')],
                                      sampler=ExhaustiveSampler(), verbose=False)
    assert validate_timetable(result.sessions) == []
    assert result.sessions[0].faculty_label == 'Dr A/Dr B'


# -----------------------------
# Labs
# -----------------------------
def test_lab_uses_exact_combination_and_lab_room(classroom, lab_room):
    result = generate_class_timetable([make_course('CS111', 'Lab', half='1')], [], [classroom, lab_room],
                                      sampler=ExhaustiveSampler(), verbose=False)
    (session,) = result.sessions
    assert session.room == 'L1'
    assert session.method == '120min-combination'
    assert session.combination.label == '14:00 - 16:00'
    assert session.combination.total_minutes == 120


def _lab_run(lab_room):
    return TimetableRun([lab_room], config.FIRST_HALF, sampler=ExhaustiveSampler(), log=RunLog(False))


def test_lab_falls_back_to_consecutive_slots(lab_room):
    run = _lab_run(lab_room)
    lab = make_course('CS111', 'Lab')
    for day in config.DAYS:
        run.index.seed(GROUP, lab.group, day, BLOCKS[2].slots, config.FIRST_HALF, holder='busy')
    run.schedule_course(lab, (lab.group,), [lab_room])
    (session,) = run.sessions
    assert session.method == 'consecutive-slots'
    assert session.combination.label == '09:00 - 10:30'


def test_lab_falls_back_to_any_two_adjacent_slots(lab_room):
    run = _lab_run(lab_room)
    lab = make_course('CS111', 'Lab')
    free = {'10:00 - 10:30', '10:45 - 11:00'}
    busy = [s for s in TIME_SLOTS if s.label not in free]
    for day in config.DAYS:
        run.index.seed(GROUP, lab.group, day, busy, config.FIRST_HALF, holder='busy')
    run.schedule_course(lab, (lab.group,), [lab_room])
    (session,) = run.sessions
    assert session.method == 'any-2-slots'
    assert [s.label for s in session.slots] == ['10:00 - 10:30', '10:45 - 11:00']


def test_missing_lab_rooms_fall_back_with_warning(classroom):
    result = generate_class_timetable([make_course('CS111', 'Lab', half='1')], [], [classroom],
                                      sampler=ExhaustiveSampler(), verbose=False)
    assert result.sessions[0].room == 'C101'
    assert any(w.scope == 'rooms' for w in result.warnings)


# -----------------------------
# Combined sections
# -----------------------------
def test_combined_sections_scheduled_once_in_large_room(classroom):
    records = [
        {'code': 'MA101', 'name': 'Maths', 'faculty': 'Dr M', 'type': 'Lecture', 'branch': 'CSE',
         'year': 1, 'section': section, 'credits': 4, 'semesterHalf': 1, 'combined': 'A;B'}
        for section in ('A', 'B')
    ]
    records.append({'code': 'CS101', 'name': 'Programming', 'faculty': 'Dr A', 'type': 'Lecture',
                    'branch': 'CSE', 'year': 1, 'section': 'A', 'semesterHalf': 1})
    rooms = [classroom, Room('C004', 240, 'Classroom')]
    result = generate_class_timetable(records, [], rooms, sampler=RandomSampler(3), verbose=False)

    combined = [s for s in result.sessions if s.code == 'MA101']
    assert len(combined) == 2
    assert all(s.combined and s.room == 'C004' for s in combined)
    assert all(s.groups == (StudentGroup('CSE', 1, 'A'), StudentGroup('CSE', 1, 'B')) for s in combined)
    assert combined[0].section == 'A+B'
    assert validate_timetable(result.sessions) == []


def test_combined_without_large_room_warns_and_uses_largest():
    course = make_course('MA101', half='1', combined={'A', 'B'})
    rooms = [Room('C1', 60, 'Classroom'), Room('C2', 80, 'Classroom')]
    result = generate_class_timetable([course], [], rooms, sampler=ExhaustiveSampler(), verbose=False)
    assert {s.room for s in result.sessions} == {'C2'}
    assert any('largest room C2' in w.message for w in result.warnings)


# -----------------------------
# Unplaced items and input errors
# -----------------------------
def test_faculty_availability_leaves_second_lecture_unplaced(classroom):
    roster = [Faculty('Dr A', availability=('Monday',))]
    result = generate_class_timetable([make_course('CS101', half='1')], roster, [classroom],
                                      sampler=ExhaustiveSampler(), verbose=False)
    assert [s.day for s in result.sessions] == ['Monday']
    (missing,) = result.unscheduled
    assert missing.session == 'Lecture 2 of 2'
    assert missing.group == 'CSE-1-A'
    assert missing.reason == "No free day left for this course"
    assert result.summary() == {'placed': 1, 'unscheduled': 1, 'warnings': 0}


def test_faculty_missing_from_roster_is_a_warning(classroom):
    result = generate_class_timetable([make_course('CS101', half='1')], [Faculty('Dr Z')], [classroom],
                                      verbose=False)
    assert any(w.scope == 'faculty' for w in result.warnings)


def test_no_rooms_is_invalid():
    with pytest.raises(InvalidInputError):
        generate_class_timetable([make_course('CS101')], [], [], verbose=False)


def test_course_without_branch_is_invalid(classroom):
    with pytest.raises(InvalidInputError):
        generate_class_timetable([{'code': 'CS101', 'type': 'Lecture'}], [], [classroom], verbose=False)


def test_unknown_session_type_is_invalid():
    with pytest.raises(InvalidInputError):
        course_from_record({'code': 'CS101', 'branch': 'CSE', 'type': 'Seminar'})


def test_course_instance_with_unknown_session_type_is_invalid(classroom):
    with pytest.raises(InvalidInputError):
        generate_class_timetable([make_course('CS101', 'Seminar')], [], [classroom], verbose=False)


def test_course_instance_with_bad_half_flag_is_invalid(classroom):
    with pytest.raises(InvalidInputError):
        generate_class_timetable([make_course('CS101', half=5)], [], [classroom], verbose=False)


def test_course_instance_with_integer_half_flag_is_scheduled(classroom):
    result = generate_class_timetable([make_course('CS101', half=1)], [], [classroom],
                                      sampler=ExhaustiveSampler(), verbose=False)
    assert len(result.for_half(config.FIRST_HALF)) == 2
    assert result.for_half(config.SECOND_HALF) == []
    assert result.unscheduled == []


def test_session_records_carry_output_fields(classroom):
    result = generate_class_timetable([make_course('CS101', half='1')], [], [classroom],
                                      sampler=ExhaustiveSampler(), verbose=False)
    record = result.to_records()[0]
    assert record['course'] == 'CS101 name - Lecture 1 of 2'
    assert record['timeSlot'] == '09:00 - 10:30'
    assert record['slots'] == ['09:00 - 10:00', '10:00 - 10:30']
    assert record['semesterHalf'] == config.FIRST_HALF
    assert record['section'] == 'A'
    assert record['combined'] is False
    rows = result.sessions[0].to_rows()
    assert [r['course'] for r in rows] == ['CS101 name - Lecture 1 of 2 (1/2)',
                                           'CS101 name - Lecture 1 of 2 (2/2)']

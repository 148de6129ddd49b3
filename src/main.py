"""
Main module for timetable generation
Loads the input CSVs, runs the class and exam schedulers and exports
CSV and Excel output.

Usage:
    python src/main.py [class|exam|all] [exam-start YYYY-MM-DD] [exam-end YYYY-MM-DD]
"""

import os
import sys

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import PatternFill, Border, Side, Alignment, Font
from openpyxl.utils import get_column_letter

import config
from Class_TT import generate_class_timetable, validate_timetable
from Exam_TT import generate_exam_schedule, validate_exam_schedule
from time_slots import TIME_SLOTS, is_elective_slot
from utils import InvalidInputError

BORDER = Border(left=Side(style='thin'), right=Side(style='thin'),
                top=Side(style='thin'), bottom=Side(style='thin'))
CENTER = Alignment(wrap_text=True, vertical='center', horizontal='center')


def _fill(color):
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


def load_records(filename, required=True):
    """Read a CSV from the data directory into a list of dict records"""
    path = os.path.join(config.DATA_DIR, filename)
    encodings_to_try = ['utf-8-sig', 'utf-8', 'cp1252']
    for encoding in encodings_to_try:
        try:
            df = pd.read_csv(path, encoding=encoding)
            break
        except UnicodeDecodeError:
            continue
        except FileNotFoundError:
            if required:
                raise SystemExit(f"Error: '{filename}' not found in {config.DATA_DIR}.")
            print(f"⚠️ Warning: {filename} not found. Using empty list.")
            return []
    else:
        raise SystemExit(f"Error: Unable to decode {filename}.")

    df.columns = [str(c).strip() for c in df.columns]
    df = df.replace(r'^\s*$', pd.NA, regex=True)
    print(f"✅ Loaded {len(df)} rows from {filename}")
    return df.to_dict('records')


# ---------------------------
# Class timetable export
# ---------------------------
def _cell_text(session):
    return f"{session.code} {session.session_type.upper()[:3]}\n{session.room}\n{session.faculty_label}"


def write_class_workbook(result, path):
    wb = Workbook()
    wb.remove(wb.active)

    header_fill = _fill(config.HEADER_FILL_COLOR)
    type_fills = {
        'Lecture': _fill(config.LEC_FILL_COLOR),
        'Tutorial': _fill(config.TUT_FILL_COLOR),
        'Lab': _fill(config.LAB_FILL_COLOR),
    }
    elective_fill = _fill(config.ELECTIVE_FILL_COLOR)
    slot_col = {slot: idx + 2 for idx, slot in enumerate(TIME_SLOTS)}

    sheets = {}
    for session in result.sessions:
        for group in session.groups:
            sheets.setdefault((session.semester_half, group), []).append(session)

    for (semester_half, group), sessions in sorted(sheets.items()):
        ws = wb.create_sheet(title=f"{group.label}_{semester_half}"[:31])
        ws.cell(row=1, column=1, value="Day").fill = header_fill
        for slot, col in slot_col.items():
            cell = ws.cell(row=1, column=col, value=slot.label)
            cell.fill = header_fill
            cell.font = Font(bold=True)
            cell.border = BORDER
            cell.alignment = CENTER

        for day_idx, day in enumerate(config.DAYS):
            row_num = day_idx + 2
            ws.cell(row=row_num, column=1, value=day).font = Font(bold=True)
            for slot, col in slot_col.items():
                cell = ws.cell(row=row_num, column=col)
                cell.border = BORDER
                if is_elective_slot(day, slot):
                    cell.value = "ELECTIVE"
                    cell.fill = elective_fill
                    cell.alignment = CENTER

            for session in sessions:
                if session.day != day:
                    continue
                cols = [slot_col[s] for s in session.slots if s in slot_col]
                if not cols:
                    continue
                first_col = min(cols)
                cell = ws.cell(row=row_num, column=first_col, value=_cell_text(session))
                cell.fill = type_fills.get(session.session_type, type_fills['Lecture'])
                cell.alignment = CENTER
                contiguous = max(cols) - first_col + 1 == len(cols)
                if len(cols) > 1 and contiguous:
                    ws.merge_cells(start_row=row_num, start_column=first_col,
                                   end_row=row_num, end_column=max(cols))

        for col_idx in range(1, len(TIME_SLOTS) + 2):
            ws.column_dimensions[get_column_letter(col_idx)].width = 15
        for row in ws.iter_rows(min_row=2, max_row=len(config.DAYS) + 1):
            ws.row_dimensions[row[0].row].height = 40

    _write_unscheduled_sheet(wb, result.unscheduled, result.warnings)
    wb.save(path)


def _write_unscheduled_sheet(wb, unscheduled, warnings):
    ws = wb.create_sheet(title="Unscheduled")
    title = ws.cell(row=1, column=1, value="Unscheduled Components")
    title.font = Font(bold=True, size=12, color="FF0000")
    headers = ['Code', 'Name', 'Faculty', 'Type', 'Session', 'Group', 'Period', 'Reason']
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=3, column=col, value=header)
        cell.font = Font(bold=True)
        cell.border = BORDER
        cell.fill = _fill(config.UNSCHEDULED_FILL_COLOR)
        cell.alignment = Alignment(horizontal='center', vertical='center')
        ws.column_dimensions[get_column_letter(col)].width = 20

    current_row = 4
    for comp in unscheduled:
        record = comp.to_record()
        values = [record['code'], record['name'], record['faculty'], record['type'],
                  record['session'], record['group'], record['semesterHalf'], record['reason']]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=current_row, column=col, value=value)
            cell.border = BORDER
            cell.alignment = Alignment(horizontal='left', vertical='center', wrap_text=True)
        current_row += 1

    if warnings:
        current_row += 2
        ws.cell(row=current_row, column=1, value="Resource Warnings").font = Font(bold=True, size=12)
        current_row += 1
        for warning in warnings:
            cell = ws.cell(row=current_row, column=1, value=str(warning))
            cell.fill = _fill(config.WARNING_FILL_COLOR)
            current_row += 1


# ---------------------------
# Exam export
# ---------------------------
def write_exam_workbook(result, path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Exam Schedule"
    headers = ['Date', 'Day', 'Slot', 'Course Code', 'Course Name', 'Credits',
               'Branch', 'Year', 'Students', 'Rooms', 'Invigilators']
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = Font(bold=True)
        cell.fill = _fill(config.HEADER_FILL_COLOR)
        cell.border = BORDER
        cell.alignment = CENTER
        ws.column_dimensions[get_column_letter(col)].width = 18

    assignments = sorted(result.assignments, key=lambda a: (a.date, a.slot, a.branch, a.year))
    for row_num, a in enumerate(assignments, 2):
        pairs = "\n".join(f"{room}: {inv}" for room, inv in a.pairs)
        values = [a.display_date, a.day, a.slot, a.code, a.name, a.credits,
                  a.branch, a.year, a.students, ", ".join(a.rooms), pairs]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row_num, column=col, value=value)
            cell.border = BORDER
            cell.alignment = Alignment(vertical='center', wrap_text=True)

    _write_unscheduled_sheet(wb, result.unscheduled, result.warnings)
    wb.save(path)


# ---------------------------
# Runs
# ---------------------------
def run_class_timetable():
    courses = load_records('courses.csv')
    faculty = load_records('faculty.csv', required=False)
    rooms = load_records('rooms.csv')

    result = generate_class_timetable(courses, faculty, rooms)
    violations = validate_timetable(result.sessions)
    if violations:
        raise SystemExit("Error: generated timetable is inconsistent:\n" + "\n".join(violations))

    pd.DataFrame(result.to_rows()).to_csv(os.path.join(config.OUTPUT_DIR, 'timetable.csv'), index=False)
    write_class_workbook(result, os.path.join(config.OUTPUT_DIR, 'timetable.xlsx'))
    print(f"✅ Timetable written to {config.OUTPUT_DIR}")
    return result


def run_exam_schedule(start_date, end_date):
    exam_courses = load_records('exam_courses.csv')
    invigilators = load_records('invigilators.csv')
    rooms = load_records('exam_rooms.csv')

    result = generate_exam_schedule(exam_courses, invigilators, rooms, (start_date, end_date))
    violations = validate_exam_schedule(result.assignments)
    if violations:
        raise SystemExit("Error: generated exam schedule is inconsistent:\n" + "\n".join(violations))

    records = result.to_records()
    for record in records:
        record['rooms'] = ", ".join(record['rooms'])
        record['invigilators'] = ", ".join(record['invigilators'])
        del record['roomInvigilatorPairs']
    pd.DataFrame(records).to_csv(os.path.join(config.OUTPUT_DIR, 'exam_schedule.csv'), index=False)
    write_exam_workbook(result, os.path.join(config.OUTPUT_DIR, 'exam_schedule.xlsx'))
    print(f"✅ Exam schedule written to {config.OUTPUT_DIR}")
    return result


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    mode = args[0] if args else 'all'
    if mode not in ('class', 'exam', 'all'):
        raise SystemExit(f"Unknown mode '{mode}'. Use class, exam or all.")
    os.makedirs(config.OUTPUT_DIR, exist_ok=True)

    try:
        if mode in ('class', 'all'):
            run_class_timetable()
        if mode in ('exam', 'all'):
            if len(args) < 3:
                raise SystemExit("Exam scheduling needs a start and end date (YYYY-MM-DD).")
            run_exam_schedule(args[1], args[2])
    except InvalidInputError as e:
        raise SystemExit(f"Error: {e}")


if __name__ == "__main__":
    main()

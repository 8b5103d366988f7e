import pandas as pd
import openpyxl
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.workbook import Workbook
import os
import zipfile
import logging
from datetime import datetime
from typing import Optional, Dict, List

from models import AllocationResult, RoomAllocation, SeatingRules, StudentRecord
from seating_algorithm import is_skipped_row


# Column aliases, compared after lower-casing and replacing spaces with '_'
COLUMN_MAPPINGS = {
    'enrollment_no': ['enrollment_no', 'enrollmentno', 'enrollment', 'roll_no', 'roll_number', 'rollno'],
    'name': ['name', 'student_name', 'studentname', 'full_name'],
    'program': ['program', 'course', 'programme'],
    'branch': ['branch', 'department', 'dept'],
    'semester': ['semester', 'sem'],
    'year': ['year', 'academic_year'],
    'section': ['section', 'sec'],
    'status': ['status'],
    'attendance_percent': ['attendance', 'attendance_percent', 'attendancepercent', 'attendance_%'],
    'fee_status': ['fee_status', 'feestatus', 'fees', 'fee'],
}

REQUIRED_FIELDS = ['enrollment_no', 'name', 'program', 'branch', 'semester']

TEMPLATE_ROWS = [
    {
        'Enrollment No': '21BTE3CSE10001', 'Name': 'John Doe', 'Program': 'B.Tech',
        'Branch': 'CSE', 'Semester': 'V', 'Year': '2021', 'Section': 'A',
        'Status': 'Regular', 'Attendance': 85, 'Fee Status': 'Paid',
    },
    {
        'Enrollment No': '21BTE3CSE10002', 'Name': 'Jane Smith', 'Program': 'B.Tech',
        'Branch': 'CSE', 'Semester': 'V', 'Year': '2021', 'Section': 'A',
        'Status': 'Regular', 'Attendance': 92, 'Fee Status': 'Paid',
    },
]

EMPTY_FILL = PatternFill(start_color="FFE6E6", end_color="FFE6E6", fill_type="solid")
OCCUPIED_FILL = PatternFill(start_color="E6F3FF", end_color="E6F3FF", fill_type="solid")
DOUBLE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
SKIPPED_FILL = PatternFill(start_color="D9D9D9", end_color="D9D9D9", fill_type="solid")
HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)


def _safe_name(room_id: str) -> str:
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in room_id)


def _unique_stems(result: AllocationResult) -> List[str]:
    """One file name stem per room, suffixed with a counter when two rooms sanitise alike."""
    stems = []
    for allocation in result.allocations:
        base = stem = _safe_name(allocation.room.room_id)
        counter = 2
        while stem in stems:
            stem = f"{base}_{counter}"
            counter += 1
        stems.append(stem)
    return stems


def _seat_labels(allocation: RoomAllocation) -> List[str]:
    """Labels like R1C2, with A/B appended for the two halves of a shared desk."""
    double_cells = {(s['row'], s['column']) for s in allocation.seats if s['seat'] == 1}
    labels = []
    for seat in allocation.seats:
        label = f"R{seat['row'] + 1}C{seat['column'] + 1}"
        if (seat['row'], seat['column']) in double_cells:
            label += "AB"[seat['seat']]
        labels.append(label)
    return labels


class ExcelHandler:
    def __init__(self, export_folder: str = 'exports'):
        self.logger = logging.getLogger(__name__)
        self.export_folder = export_folder
        self.last_errors: List[Dict] = []

    def read_student_data(self, filepath: str, mapping: Optional[Dict[str, List[str]]] = None) -> Optional[pd.DataFrame]:
        """
        Read an exam roster from the first sheet of an Excel file.

        Required columns: Enrollment No, Name, Program, Branch, Semester.
        Rows that fail validation are skipped and kept in self.last_errors.
        """
        self.last_errors = []
        try:
            df = pd.read_excel(filepath, dtype=object)
        except Exception as e:
            self.logger.error(f"Error reading Excel file: {str(e)}")
            return None

        if df.empty:
            self.logger.error(f"Excel file is empty: {filepath}")
            return None

        # Normalize column names (handle case variations and spaces)
        df.columns = df.columns.astype(str).str.strip().str.lower().str.replace(' ', '_')

        aliases = {field: list(names) for field, names in COLUMN_MAPPINGS.items()}
        for field, names in (mapping or {}).items():
            extra = [str(n).strip().lower().replace(' ', '_') for n in names]
            aliases[field] = extra + aliases.get(field, [])

        mapped_columns = {}
        for expected_col, possible_names in aliases.items():
            for possible_name in possible_names:
                if possible_name in df.columns:
                    mapped_columns[expected_col] = possible_name
                    break

        missing_columns = [col for col in REQUIRED_FIELDS if col not in mapped_columns]
        if missing_columns:
            self.logger.error(f"Missing columns: {missing_columns}")
            return None

        result_df = pd.DataFrame()
        for standard_name, original_name in mapped_columns.items():
            result_df[standard_name] = df[original_name]

        return self._clean_student_data(result_df)

    def _format_value(self, field: str, value):
        if field == 'attendance_percent':
            try:
                percent = float(value)
            except (TypeError, ValueError):
                return 100.0
            if pd.isna(percent):
                return 100.0
            return min(100.0, max(0.0, percent))

        text = "" if value is None or (not isinstance(value, str) and pd.isna(value)) else str(value).strip()
        if field in ('enrollment_no', 'program', 'branch', 'semester'):
            return text.upper()
        if field == 'section':
            return text.upper() or 'A'
        if field == 'status':
            return text or 'Regular'
        if field == 'fee_status':
            return text or 'Paid'
        return text

    def _clean_student_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Format every field, reject incomplete rows and drop duplicate enrollment numbers.
        """
        students = []
        for index, row in df.iterrows():
            student = {field: self._format_value(field, row.get(field)) for field in COLUMN_MAPPINGS}

            missing = [field for field in REQUIRED_FIELDS if not student[field]]
            if missing:
                self.last_errors.append({'row': index + 1, 'error': f"Missing required field: {missing[0]}"})
                continue
            if len(student['enrollment_no']) < 5:
                self.last_errors.append({'row': index + 1, 'error': 'Invalid enrollment number format'})
                continue

            students.append(student)

        if self.last_errors:
            self.logger.warning(f"Student data validation errors: {self.last_errors}")

        cleaned = pd.DataFrame(students, columns=list(COLUMN_MAPPINGS))
        # Remove duplicate enrollment numbers
        cleaned = cleaned.drop_duplicates(subset=['enrollment_no'], keep='first').reset_index(drop=True)
        return cleaned

    def generate_sample_template(self, filepath: Optional[str] = None) -> Optional[str]:
        """Write an import template with two example rows."""
        try:
            filepath = filepath or os.path.join(self.export_folder, 'student_import_template.xlsx')
            pd.DataFrame(TEMPLATE_ROWS).to_excel(filepath, index=False, sheet_name='Students', engine='openpyxl')
            return filepath
        except Exception as e:
            self.logger.error(f"Error writing sample template: {str(e)}")
            return None

    def export_room_seating(self, allocation: RoomAllocation, file_stem: Optional[str] = None) -> Optional[str]:
        """
        Export one room's seat list, one line per seated student.
        """
        room = allocation.room
        room_id = room.room_id
        try:
            wb = openpyxl.Workbook()
            ws = wb.active
            ws.title = "Seating"

            header_font = Font(bold=True, size=12)
            center_alignment = Alignment(horizontal='center', vertical='center')

            ws['A1'] = f"Examination Seating Arrangement - Room {room_id}"
            ws['A1'].font = Font(bold=True, size=14)
            ws.merge_cells('A1:G1')

            ws['A2'] = f"Room Layout: {room.rows} rows × {room.columns} columns, capacity {room.capacity}"
            ws.merge_cells('A2:G2')

            headers = ['Seat', 'Row', 'Column', 'Enrollment No', 'Name', 'Branch', 'Notes']
            for col, header in enumerate(headers, 1):
                cell = ws.cell(row=4, column=col, value=header)
                cell.font = header_font
                cell.fill = HEADER_FILL
                cell.border = THIN_BORDER
                cell.alignment = center_alignment

            row_num = 5
            for seat, label in zip(allocation.seats, _seat_labels(allocation)):
                notes = "Shared desk" if label[-1] in "AB" else ""
                row_data = [label, seat['row'] + 1, seat['column'] + 1,
                            seat['enrollment_no'], seat['name'], seat['branch'], notes]
                for col, value in enumerate(row_data, 1):
                    cell = ws.cell(row=row_num, column=col, value=value)
                    cell.border = THIN_BORDER
                    cell.alignment = center_alignment
                row_num += 1

            ws.cell(row=row_num + 1, column=1, value="Summary:").font = Font(bold=True)
            ws.cell(row=row_num + 2, column=1, value=f"Students Seated: {len(allocation.students)}")
            ws.cell(row=row_num + 3, column=1, value=f"Room Capacity: {room.capacity}")
            ws.cell(row=row_num + 4, column=1, value=f"Utilization: {allocation.utilization}%")

            # Auto-adjust column widths
            for col_idx in range(1, len(headers) + 1):
                max_length = 0
                column_letter = get_column_letter(col_idx)
                for row_idx in range(4, row_num):
                    value = ws.cell(row=row_idx, column=col_idx).value
                    if value:
                        max_length = max(max_length, len(str(value)))
                ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

            filepath = os.path.join(self.export_folder, f"{file_stem or _safe_name(room_id)}_seating.xlsx")
            wb.save(filepath)

            self.logger.info(f"Exported seating plan to {filepath}")
            return filepath

        except Exception as e:
            self.logger.error(f"Error exporting room seating: {str(e)}")
            return None

    def _format_student_short(self, student: Optional[StudentRecord]) -> str:
        """Format student info in short format for grid view."""
        if not student:
            return ""
        name = student.name
        if len(name) > 12:
            name = name[:10] + ".."
        return f"{student.enrollment_no}\n{name}"

    def export_room_grid_layout(self, allocation: RoomAllocation, rules: Optional[SeatingRules] = None,
                                file_stem: Optional[str] = None) -> Optional[str]:
        """
        Export a room in row/column grid format for visual representation.
        """
        rules = rules or SeatingRules()
        room = allocation.room
        room_id = room.room_id
        try:
            wb = Workbook()
            ws = wb.active
            ws.title = "Grid Layout"

            ws.merge_cells('A1:' + get_column_letter(room.columns + 1) + '1')
            title_cell = ws.cell(row=1, column=1, value=f"Room {room_id} - Grid Layout")
            title_cell.font = Font(size=16, bold=True)
            title_cell.alignment = Alignment(horizontal='center')

            current_row = 3
            ws.cell(row=current_row, column=1, value="Row/Col").font = Font(bold=True)
            for col in range(room.columns):
                label = f"Column {col + 1}"
                if (col + 1) in rules.double_columns:
                    label += " (double)"
                ws.cell(row=current_row, column=col + 2, value=label).font = Font(bold=True)
            current_row += 1

            for row_idx, row in enumerate(allocation.grid):
                skipped = is_skipped_row(row_idx, rules.skip_rows)
                ws.cell(row=current_row, column=1, value=f"Row {row_idx + 1}").font = Font(bold=True)

                for col_idx, seat in enumerate(row):
                    cell = ws.cell(row=current_row, column=col_idx + 2)
                    if skipped:
                        cell.value = "Skipped"
                        cell.fill = SKIPPED_FILL
                    elif seat.is_empty:
                        cell.value = "Empty"
                        cell.fill = EMPTY_FILL
                    else:
                        cell.value = "\n".join(self._format_student_short(s) for s in seat.occupants)
                        cell.fill = DOUBLE_FILL if seat.is_double else OCCUPIED_FILL
                    cell.border = THIN_BORDER
                    cell.alignment = Alignment(wrap_text=True, vertical='center')

                current_row += 1

            current_row += 2
            ws.cell(row=current_row, column=1, value="Room Summary:").font = Font(bold=True, size=12)
            ws.cell(row=current_row + 1, column=1, value=f"Capacity: {room.capacity}")
            ws.cell(row=current_row + 2, column=1, value=f"Students Seated: {len(allocation.students)}")
            ws.cell(row=current_row + 3, column=1, value=f"Utilization: {allocation.utilization}%")

            for col_idx in range(1, room.columns + 2):
                ws.column_dimensions[get_column_letter(col_idx)].width = 18

            filepath = os.path.join(self.export_folder, f"{file_stem or _safe_name(room_id)}_grid_layout.xlsx")
            wb.save(filepath)

            self.logger.info(f"Exported grid layout to {filepath}")
            return filepath

        except Exception as e:
            self.logger.error(f"Error exporting grid layout: {str(e)}")
            return None

    def export_attendance_sheet(self, allocation: RoomAllocation, file_stem: Optional[str] = None) -> Optional[str]:
        """
        Export the invigilator's attendance sheet for one room.

        Students are listed in placement order, each with a blank cell to sign.
        """
        room = allocation.room
        room_id = room.room_id
        try:
            wb = Workbook()
            ws = wb.active
            ws.title = "Attendance"

            ws.merge_cells('A1:F1')
            title_cell = ws.cell(row=1, column=1, value=f"Attendance Sheet - Room {room_id}")
            title_cell.font = Font(size=14, bold=True)
            title_cell.alignment = Alignment(horizontal='center')

            branches = sorted({s.branch for s in allocation.students})
            ws.cell(row=2, column=1, value=f"Branches: {', '.join(branches)}")
            ws.cell(row=2, column=4, value="Date: ____________")

            headers = ['S.No', 'Seat', 'Enrollment No', 'Name', 'Branch', 'Signature']
            for col, header in enumerate(headers, 1):
                cell = ws.cell(row=4, column=col, value=header)
                cell.font = Font(bold=True, color="FFFFFF")
                cell.fill = HEADER_FILL
                cell.border = THIN_BORDER
                cell.alignment = Alignment(horizontal='center')

            labels = {seat['enrollment_no']: label
                      for seat, label in zip(allocation.seats, _seat_labels(allocation))}

            row_num = 5
            for number, student in enumerate(allocation.students, 1):
                row_data = [number, labels.get(student.enrollment_no, ''), student.enrollment_no,
                            student.name, student.branch, None]
                for col, value in enumerate(row_data, 1):
                    cell = ws.cell(row=row_num, column=col, value=value)
                    cell.border = THIN_BORDER
                ws.row_dimensions[row_num].height = 24
                row_num += 1

            ws.cell(row=row_num + 1, column=1, value=f"Total Students: {len(allocation.students)}").font = Font(bold=True)
            ws.cell(row=row_num + 1, column=4, value="Present: ______   Absent: ______")
            ws.cell(row=row_num + 3, column=4, value="Invigilator Signature: ____________________")

            for column_letter, width in zip("ABCDEF", (6, 10, 20, 28, 10, 24)):
                ws.column_dimensions[column_letter].width = width

            filepath = os.path.join(self.export_folder, f"{file_stem or _safe_name(room_id)}_attendance.xlsx")
            wb.save(filepath)

            self.logger.info(f"Exported attendance sheet to {filepath}")
            return filepath

        except Exception as e:
            self.logger.error(f"Error exporting attendance sheet: {str(e)}")
            return None

    def create_summary_workbook(self, result: AllocationResult) -> Optional[str]:
        """
        Create a summary workbook with an overview of all rooms and the
        students left without a seat.
        """
        try:
            wb = Workbook()
            ws = wb.active
            ws.title = "Seating Plan Summary"

            ws.merge_cells('A1:G1')
            title_cell = ws.cell(row=1, column=1, value="Exam Seating Plan Summary")
            title_cell.font = Font(size=16, bold=True)
            title_cell.alignment = Alignment(horizontal='center')

            ws.cell(row=2, column=1, value=f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
            ws.cell(row=2, column=1).font = Font(size=10, italic=True)

            current_row = 4
            headers = ['Room ID', 'Layout', 'Capacity', 'Seated', 'Empty', 'Utilization %', 'Status']
            for col, header in enumerate(headers, 1):
                cell = ws.cell(row=current_row, column=col, value=header)
                cell.font = Font(bold=True)
                cell.fill = PatternFill(start_color="D9EAD3", end_color="D9EAD3", fill_type="solid")
            current_row += 1

            total_capacity = 0
            total_seated = 0

            for allocation in result.allocations:
                room = allocation.room
                seated = len(allocation.students)
                total_capacity += room.capacity
                total_seated += seated

                if allocation.utilization >= 90:
                    status, status_color = "Full", "FFE6E6"
                elif allocation.utilization >= 70:
                    status, status_color = "Good", "FFF2CC"
                else:
                    status, status_color = "Low", "E6F3FF"

                row_data = [
                    room.room_id,
                    f"{room.rows}×{room.columns}",
                    room.capacity,
                    seated,
                    room.capacity - seated,
                    f"{allocation.utilization}%",
                    status,
                ]
                for col, value in enumerate(row_data, 1):
                    cell = ws.cell(row=current_row, column=col, value=value)
                    if col == 7:
                        cell.fill = PatternFill(start_color=status_color, end_color=status_color, fill_type="solid")
                current_row += 1

            current_row += 1
            overall_util = round(total_seated / total_capacity * 100, 1) if total_capacity > 0 else 0
            ws.cell(row=current_row, column=1, value="TOTALS").font = Font(bold=True)
            ws.cell(row=current_row, column=3, value=total_capacity).font = Font(bold=True)
            ws.cell(row=current_row, column=4, value=total_seated).font = Font(bold=True)
            ws.cell(row=current_row, column=5, value=total_capacity - total_seated).font = Font(bold=True)
            ws.cell(row=current_row, column=6, value=f"{overall_util}%").font = Font(bold=True)

            current_row += 3
            ws.cell(row=current_row, column=1, value="Overall Statistics:").font = Font(bold=True, size=12)
            current_row += 1
            stats = [
                f"Total Rooms: {len(result.allocations)}",
                f"Total Capacity: {total_capacity} students",
                f"Students Seated: {total_seated}",
                f"Students Unallocated: {len(result.unallocated)}",
                f"Overall Utilization: {overall_util}%",
            ]
            for stat in stats:
                ws.cell(row=current_row, column=1, value=stat)
                current_row += 1

            for col_idx in range(1, 8):
                ws.column_dimensions[get_column_letter(col_idx)].width = 15

            unallocated_ws = wb.create_sheet("Unallocated")
            for col, header in enumerate(['Enrollment No', 'Name', 'Branch', 'Status', 'Fee Status'], 1):
                unallocated_ws.cell(row=1, column=col, value=header).font = Font(bold=True)
            for row_num, student in enumerate(result.unallocated, 2):
                values = [student.enrollment_no, student.name, student.branch, student.status, student.fee_status]
                for col, value in enumerate(values, 1):
                    unallocated_ws.cell(row=row_num, column=col, value=value)

            filename = f"seating_summary_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
            filepath = os.path.join(self.export_folder, filename)
            wb.save(filepath)

            self.logger.info(f"Created summary workbook: {filepath}")
            return filepath

        except Exception as e:
            self.logger.error(f"Error creating summary workbook: {str(e)}")
            return None

    def export_all_rooms_zip(self, result: AllocationResult, rules: Optional[SeatingRules] = None) -> Optional[str]:
        """
        Export every room (seat list, grid and attendance sheet) plus the
        summary, zipped together.
        """
        exported_files = []
        try:
            for allocation, stem in zip(result.allocations, _unique_stems(result)):
                for filepath in (self.export_room_seating(allocation, stem),
                                 self.export_room_grid_layout(allocation, rules, stem),
                                 self.export_attendance_sheet(allocation, stem)):
                    if filepath:
                        exported_files.append(filepath)

            summary_file = self.create_summary_workbook(result)
            if summary_file:
                exported_files.append(summary_file)

            if not exported_files:
                return None

            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            zip_filepath = os.path.join(self.export_folder, f"seating_plan_complete_{timestamp}.zip")

            with zipfile.ZipFile(zip_filepath, 'w', zipfile.ZIP_DEFLATED) as zip_file:
                for file_path in exported_files:
                    if os.path.exists(file_path):
                        # Add file to ZIP with just the filename (no path)
                        zip_file.write(file_path, os.path.basename(file_path))

            self.logger.info(f"Created complete seating plan ZIP: {zip_filepath}")
            return zip_filepath

        except Exception as e:
            self.logger.error(f"Error creating ZIP export: {str(e)}")
            return None

        finally:
            for file_path in exported_files:
                if os.path.exists(file_path):
                    try:
                        os.remove(file_path)
                    except OSError as e:
                        self.logger.warning(f"Could not remove {file_path}: {e}")

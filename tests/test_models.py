import pytest

from models import (
    DEFAULT_SEATING_RULES, AllocationResult, Arrangement, RoomGeometry, Seat, SeatingRules,
    StudentRecord,
)
from conftest import make_student


def test_student_from_camel_case_dict():
    student = StudentRecord.from_dict({
        'enrollmentNo': '21BTE3CSE10001',
        'name': 'John Doe',
        'branch': 'CSE',
        'attendancePercent': '85',
        'feeStatus': 'Pending',
    })

    assert student.enrollment_no == '21BTE3CSE10001'
    assert student.attendance_percent == 85.0
    assert student.fee_status == 'Pending'
    assert student.status == 'Regular'
    assert student.section == 'A'


def test_student_round_trips_through_dict():
    student = make_student('21BTE3CSE10001', 'CSE', attendance_percent=72.5, status='Backlog')
    assert StudentRecord.from_dict(student.to_dict()) == student


def test_room_capacity_defaults_to_grid_size():
    room = RoomGeometry.from_dict({'roomNumber': '204', 'rows': 5, 'columns': 6})
    assert room.capacity == 30
    assert room.room_id == '204'


def test_room_identifiers_are_carried_through():
    room = RoomGeometry.from_dict({
        'buildingId': 'b-17', 'buildingName': 'Main Block', 'floorName': 'First',
        'roomNumber': '101', 'rows': 4, 'columns': 4, 'capacity': 12,
    })

    data = room.to_dict()
    assert data['building_id'] == 'b-17'
    assert data['room_id'] == 'Main Block-First-101'
    assert data['capacity'] == 12
    assert RoomGeometry.from_dict(data) == room


def test_rules_from_exam_session_shape():
    rules = SeatingRules.from_dict({
        'seatingRules': {'arrangement': 'horizontal', 'branchMixing': False, 'skipRows': 1, 'doubleColumns': [2]},
        'studentFilters': {'attendancePercent': 75, 'status': ['Regular'], 'feeStatus': ['Paid', 'Partial']},
    })

    assert rules.arrangement == 'horizontal'
    assert rules.branch_mixing is False
    assert rules.skip_rows == 1
    assert rules.double_columns == (2,)
    assert rules.min_attendance == 75
    assert rules.allowed_status == ('Regular',)
    assert rules.allowed_fee_status == ('Paid', 'Partial')


def test_rules_override_defaults_in_any_spelling():
    rules = SeatingRules.from_dict({'branchMixing': False, 'minAttendance': None}, defaults=DEFAULT_SEATING_RULES)

    assert rules.branch_mixing is False
    assert rules.min_attendance is None
    assert rules.allowed_status == ('Regular',)
    assert rules.arrangement == 'vertical'


def test_rules_to_dict_serialises_enum():
    rules = SeatingRules(arrangement=Arrangement.HORIZONTAL, double_columns=(1, 3))
    data = rules.to_dict()
    assert data['arrangement'] == 'horizontal'
    assert data['double_columns'] == [1, 3]


def test_seat_flags():
    a, b = make_student('A0001', 'A'), make_student('B0001', 'B')
    assert Seat().is_empty and Seat().to_list() is None
    assert not Seat((a,)).is_double
    assert Seat((a, b)).is_double
    assert Seat((a, b)).to_list() == ['A0001', 'B0001']


def test_empty_result_summary():
    result = AllocationResult()
    assert result.total_allocated == 0
    assert result.find_room('anything') is None
    assert result.to_dict()['total_unallocated'] == 0


@pytest.mark.parametrize('value, expected', [
    ('false', False), ('False', False), ('0', False), ('no', False),
    ('true', True), ('yes', True), (0, False), (1, True), (False, False),
])
def test_rules_parse_string_booleans(value, expected):
    assert SeatingRules.from_dict({'branchMixing': value}).branch_mixing is expected


def test_rules_leave_unknown_boolean_strings_for_the_validator():
    assert SeatingRules.from_dict({'branchMixing': 'maybe'}).branch_mixing == 'maybe'


def test_rules_wrap_a_single_status_string():
    rules = SeatingRules.from_dict({'allowedStatus': 'Regular', 'feeStatus': 'Paid'})

    assert rules.allowed_status == ('Regular',)
    assert rules.allowed_fee_status == ('Paid',)


def test_rules_carry_exam_scope():
    rules = SeatingRules.from_dict({'programs': ['B.TECH'], 'branches': 'CSE', 'semesters': ['V'], 'years': None})

    assert rules.programs == ('B.TECH',)
    assert rules.branches == ('CSE',)
    assert rules.semesters == ('V',)
    assert rules.years is None
    assert rules.to_dict()['branches'] == ['CSE']

# Plain data types passed in and out of the seating engine.
# Storage stays in app.config; these objects are built fresh for every call.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Arrangement(Enum):
    HORIZONTAL = "horizontal"  # row-major
    VERTICAL = "vertical"  # column-major


DEFAULT_SEATING_RULES = {
    'arrangement': 'vertical',
    'branch_mixing': True,
    'skip_rows': 0,
    'double_columns': [],
    'min_attendance': 75,
    'allowed_status': ['Regular'],
    'allowed_fee_status': ['Paid'],
}


RULE_KEY_ALIASES = {
    'branchMixing': 'branch_mixing',
    'skipRows': 'skip_rows',
    'doubleColumns': 'double_columns',
    'minAttendance': 'min_attendance',
    'attendancePercent': 'min_attendance',
    'allowedStatus': 'allowed_status',
    'status': 'allowed_status',
    'allowedFeeStatus': 'allowed_fee_status',
    'feeStatus': 'allowed_fee_status',
    'fee_status': 'allowed_fee_status',
}

NESTED_RULE_KEYS = ('studentFilters', 'student_filters', 'seatingRules', 'seating_rules')


def _flatten_rules(data: Dict) -> Dict:
    flat = {}
    for source in [data.get(key) or {} for key in NESTED_RULE_KEYS] + [data]:
        for key, value in source.items():
            if key not in NESTED_RULE_KEYS:
                flat[RULE_KEY_ALIASES.get(key, key)] = value
    return flat


TRUE_STRINGS = {'true', 'yes', 'on', '1'}
FALSE_STRINGS = {'false', 'no', 'off', '0', ''}


def _parse_bool(value):
    """Read form and JSON style booleans; anything unrecognised is left for the validator."""
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return bool(value)
    return value


def _as_tuple(value):
    # A bare string is one allowed value, not a sequence of characters
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(value)
    return value


def _pick(data: Dict, *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class StudentRecord:
    enrollment_no: str
    name: str
    branch: str
    program: str = ""
    semester: str = ""
    year: str = ""
    section: str = "A"
    attendance_percent: float = 100.0
    status: str = "Regular"
    fee_status: str = "Paid"

    @classmethod
    def from_dict(cls, data: Dict) -> 'StudentRecord':
        """Build a record from an imported row, accepting snake_case or camelCase keys."""
        return cls(
            enrollment_no=str(_pick(data, 'enrollment_no', 'enrollmentNo', default='')),
            name=str(_pick(data, 'name', default='')),
            branch=str(_pick(data, 'branch', default='')),
            program=str(_pick(data, 'program', default='')),
            semester=str(_pick(data, 'semester', default='')),
            year=str(_pick(data, 'year', default='')),
            section=str(_pick(data, 'section', default='A')),
            attendance_percent=float(_pick(data, 'attendance_percent', 'attendancePercent', default=100)),
            status=str(_pick(data, 'status', default='Regular')),
            fee_status=str(_pick(data, 'fee_status', 'feeStatus', default='Paid')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enrollment_no': self.enrollment_no,
            'name': self.name,
            'program': self.program,
            'branch': self.branch,
            'semester': self.semester,
            'year': self.year,
            'section': self.section,
            'attendance_percent': self.attendance_percent,
            'status': self.status,
            'fee_status': self.fee_status,
        }


@dataclass(frozen=True)
class RoomGeometry:
    rows: int
    columns: int
    capacity: int
    room_number: str = ""
    building_id: Optional[str] = None
    building_name: str = ""
    floor_name: str = ""

    @property
    def room_id(self) -> str:
        parts = [p for p in (self.building_name, self.floor_name, self.room_number) if p]
        return "-".join(parts) if parts else f"{self.rows}x{self.columns}"

    @classmethod
    def from_dict(cls, data: Dict) -> 'RoomGeometry':
        rows = _pick(data, 'rows', default=0)
        columns = _pick(data, 'columns', default=0)
        capacity = _pick(data, 'capacity', default=None)
        if capacity is None:
            capacity = rows * columns
        return cls(
            rows=rows,
            columns=columns,
            capacity=capacity,
            room_number=str(_pick(data, 'room_number', 'roomNumber', 'room_id', 'number', default='')),
            building_id=_pick(data, 'building_id', 'buildingId'),
            building_name=str(_pick(data, 'building_name', 'buildingName', default='')),
            floor_name=str(_pick(data, 'floor_name', 'floorName', default='')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'room_id': self.room_id,
            'room_number': self.room_number,
            'building_id': self.building_id,
            'building_name': self.building_name,
            'floor_name': self.floor_name,
            'rows': self.rows,
            'columns': self.columns,
            'capacity': self.capacity,
        }


@dataclass(frozen=True)
class SeatingRules:
    arrangement: Arrangement = Arrangement.VERTICAL
    branch_mixing: bool = True
    skip_rows: int = 0
    double_columns: Tuple[int, ...] = ()
    min_attendance: Optional[float] = None
    allowed_status: Optional[Tuple[str, ...]] = None
    allowed_fee_status: Optional[Tuple[str, ...]] = None
    # Roster scope for an exam session; unset or empty means no check
    programs: Optional[Tuple[str, ...]] = None
    branches: Optional[Tuple[str, ...]] = None
    semesters: Optional[Tuple[str, ...]] = None
    years: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_dict(cls, data: Dict, defaults: Optional[Dict] = None) -> 'SeatingRules':
        """
        Build rules from either a flat dict or an exam-session style dict
        with nested 'seatingRules' and 'studentFilters'. Keys in `data`
        override those in `defaults` whatever their spelling.

        The arrangement string is converted by the engine's validator, so an
        unknown value is reported as a rules error rather than a KeyError here.
        """
        flat = {**_flatten_rules(defaults or {}), **_flatten_rules(data)}

        branch_mixing = flat.get('branch_mixing')
        double_columns = flat.get('double_columns') or ()

        return cls(
            arrangement=flat.get('arrangement') or Arrangement.VERTICAL,
            branch_mixing=True if branch_mixing is None else _parse_bool(branch_mixing),
            skip_rows=flat.get('skip_rows') or 0,
            double_columns=_as_tuple(double_columns),
            min_attendance=flat.get('min_attendance'),
            allowed_status=_as_tuple(flat.get('allowed_status')),
            allowed_fee_status=_as_tuple(flat.get('allowed_fee_status')),
            programs=_as_tuple(flat.get('programs')),
            branches=_as_tuple(flat.get('branches')),
            semesters=_as_tuple(flat.get('semesters')),
            years=_as_tuple(flat.get('years')),
        )

    def to_dict(self) -> Dict[str, Any]:
        arrangement = self.arrangement.value if isinstance(self.arrangement, Arrangement) else self.arrangement
        data = {
            'arrangement': arrangement,
            'branch_mixing': self.branch_mixing,
            'skip_rows': self.skip_rows,
            'double_columns': list(self.double_columns),
            'min_attendance': self.min_attendance,
        }
        for name in SET_RULE_FIELDS:
            value = getattr(self, name)
            data[name] = list(value) if value is not None else None
        return data


SET_RULE_FIELDS = ('allowed_status', 'allowed_fee_status', 'programs', 'branches', 'semesters', 'years')


@dataclass(frozen=True)
class Seat:
    occupants: Tuple[StudentRecord, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.occupants

    @property
    def is_double(self) -> bool:
        return len(self.occupants) == 2

    def to_list(self) -> Optional[List[str]]:
        if self.is_empty:
            return None
        return [s.enrollment_no for s in self.occupants]


Grid = List[List[Seat]]


@dataclass
class RoomAllocation:
    room: RoomGeometry
    grid: Grid
    students: List[StudentRecord]
    utilization: float
    seats: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'room': self.room.to_dict(),
            'grid': [[seat.to_list() for seat in row] for row in self.grid],
            'students': [s.to_dict() for s in self.students],
            'total_students': len(self.students),
            'utilization': self.utilization,
            'seats': list(self.seats),
        }


@dataclass
class AllocationResult:
    allocations: List[RoomAllocation] = field(default_factory=list)
    unallocated: List[StudentRecord] = field(default_factory=list)

    @property
    def total_allocated(self) -> int:
        return sum(len(a.students) for a in self.allocations)

    def find_room(self, room_id: str) -> Optional[RoomAllocation]:
        return next((a for a in self.allocations if a.room.room_id == room_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allocations': [a.to_dict() for a in self.allocations],
            'unallocated': [s.to_dict() for s in self.unallocated],
            'total_allocated': self.total_allocated,
            'total_unallocated': len(self.unallocated),
        }

import random
import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from models import (
    AllocationResult, Arrangement, Grid, RoomAllocation, RoomGeometry, Seat,
    SET_RULE_FIELDS, SeatingRules, StudentRecord,
)


class SeatingError(ValueError):
    """Base class for rejected seating input."""


class InvalidGeometryError(SeatingError):
    pass


class InvalidRulesError(SeatingError):
    pass


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_skipped_row(row: int, skip_rows: int) -> bool:
    """Every (skip_rows + 1)-th row, counted from row 1, is left empty."""
    return skip_rows > 0 and (row + 1) % (skip_rows + 1) == 0


def get_position_from_index(index: int, rows: int, columns: int,
                            arrangement: Arrangement) -> Tuple[int, int]:
    """
    Map a zero-based placement index to (row, column).

    Only valid for grids built without skipped rows or double columns; for
    anything else read positions from SeatingAlgorithm.seat_assignments().
    """
    if arrangement is Arrangement.HORIZONTAL:
        return index // columns, index % columns
    return index % rows, index // rows


class SeatingAlgorithm:
    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.arrangements: Dict[Arrangement, Callable] = {
            Arrangement.HORIZONTAL: self.arrange_horizontal,
            Arrangement.VERTICAL: self.arrange_vertical,
        }

    # Validation

    def validate_rooms(self, rooms: Sequence[RoomGeometry]) -> None:
        for room in rooms:
            for attr in ('rows', 'columns', 'capacity'):
                value = getattr(room, attr)
                if not _is_int(value) or value <= 0:
                    self.logger.warning(f"Rejected room {room.room_id}: {attr}={value!r}")
                    raise InvalidGeometryError(
                        f"Room {room.room_id}: {attr} must be a positive integer, got {value!r}"
                    )

    def _validate_value_set(self, name: str, value) -> Optional[Tuple[str, ...]]:
        if value is None:
            return None
        if isinstance(value, str):
            return (value,)
        if not isinstance(value, (list, tuple, set, frozenset)):
            self.logger.warning(f"Rejected {name} {value!r}")
            raise InvalidRulesError(f"{name} must be a list of values, got {value!r}")
        return tuple(str(v) for v in value)

    def validate_rules(self, rules: SeatingRules, rooms: Sequence[RoomGeometry] = ()) -> SeatingRules:
        """
        Check the rules and return a copy with the arrangement normalised to
        an Arrangement member and every value filter normalised to a tuple.
        """
        arrangement = rules.arrangement
        if not isinstance(arrangement, Arrangement):
            try:
                arrangement = Arrangement(str(arrangement).strip().lower())
            except ValueError:
                self.logger.warning(f"Rejected arrangement {rules.arrangement!r}")
                raise InvalidRulesError(f"Unknown arrangement: {rules.arrangement!r}") from None

        if not isinstance(rules.branch_mixing, bool):
            self.logger.warning(f"Rejected branch_mixing {rules.branch_mixing!r}")
            raise InvalidRulesError(f"branch_mixing must be true or false, got {rules.branch_mixing!r}")

        if not _is_int(rules.skip_rows) or rules.skip_rows < 0:
            self.logger.warning(f"Rejected skip_rows {rules.skip_rows!r}")
            raise InvalidRulesError(f"skip_rows must be a non-negative integer, got {rules.skip_rows!r}")

        min_attendance = rules.min_attendance
        if min_attendance is not None and (isinstance(min_attendance, bool)
                                           or not isinstance(min_attendance, (int, float))):
            self.logger.warning(f"Rejected min_attendance {min_attendance!r}")
            raise InvalidRulesError(f"min_attendance must be a number, got {min_attendance!r}")

        if not isinstance(rules.double_columns, (list, tuple)):
            self.logger.warning(f"Rejected double columns {rules.double_columns!r}")
            raise InvalidRulesError(f"double_columns must be a list of column numbers, got {rules.double_columns!r}")

        widest = max((room.columns for room in rooms), default=None)
        for column in rules.double_columns:
            if not _is_int(column) or column < 1:
                self.logger.warning(f"Rejected double column {column!r}")
                raise InvalidRulesError(f"Double column {column!r} is not a 1-indexed column number")
            if widest is not None and column > widest:
                self.logger.warning(f"Rejected double column {column} (widest room: {widest})")
                raise InvalidRulesError(
                    f"Double column {column} is outside every room (widest room has {widest} columns)"
                )

        value_sets = {name: self._validate_value_set(name, getattr(rules, name)) for name in SET_RULE_FIELDS}
        return replace(rules, arrangement=arrangement, double_columns=tuple(rules.double_columns), **value_sets)

    # Eligibility

    def apply_filters(self, students: Sequence[StudentRecord], rules: SeatingRules) -> List[StudentRecord]:
        """
        Keep students inside the exam's program, branch, semester and year
        scope who also pass the attendance, status and fee checks, in roster
        order.
        """
        eligible = []
        for student in students:
            if rules.programs and student.program not in rules.programs:
                continue
            if rules.branches and student.branch not in rules.branches:
                continue
            if rules.semesters and student.semester not in rules.semesters:
                continue
            if rules.years and student.year not in rules.years:
                continue
            if rules.min_attendance is not None and student.attendance_percent < rules.min_attendance:
                continue
            if rules.allowed_status and student.status not in rules.allowed_status:
                continue
            if rules.allowed_fee_status and student.fee_status not in rules.allowed_fee_status:
                continue
            eligible.append(student)
        return eligible

    def branch_counts(self, students: Sequence[StudentRecord]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for student in students:
            counts[student.branch] = counts.get(student.branch, 0) + 1
        return counts

    # Ordering

    def apply_sorting(self, students: Sequence[StudentRecord], rules: SeatingRules,
                      rng: Optional[random.Random] = None) -> List[StudentRecord]:
        if rules.branch_mixing:
            return self.mix_branches(students, rng)
        return self.sort_by_branch(students)

    def sort_by_branch(self, students: Sequence[StudentRecord]) -> List[StudentRecord]:
        return sorted(students, key=lambda s: (s.branch, s.enrollment_no))

    def mix_branches(self, students: Sequence[StudentRecord],
                     rng: Optional[random.Random] = None) -> List[StudentRecord]:
        """
        Interleave branches so neighbouring seats go to different branches.

        Students are grouped by branch in first-seen order, each group is
        shuffled on its own, then groups are read round-robin, dropping a
        branch once it runs out.
        """
        rng = rng or random.SystemRandom()

        branch_groups: Dict[str, List[StudentRecord]] = {}
        for student in students:
            branch_groups.setdefault(student.branch, []).append(student)

        for group in branch_groups.values():
            rng.shuffle(group)

        result = []
        longest = max((len(g) for g in branch_groups.values()), default=0)
        for i in range(longest):
            for group in branch_groups.values():
                if i < len(group):
                    result.append(group[i])
        return result

    # Grid building

    def create_empty_grid(self, rows: int, columns: int) -> Grid:
        return [[Seat() for _ in range(columns)] for _ in range(rows)]

    def _fill_cell(self, grid: Grid, row: int, col: int, students: Sequence[StudentRecord],
                   index: int, double_columns: Tuple[int, ...]) -> int:
        if (col + 1) in double_columns and index + 1 < len(students):
            grid[row][col] = Seat((students[index], students[index + 1]))
            return index + 2
        grid[row][col] = Seat((students[index],))
        return index + 1

    def arrange_horizontal(self, students: Sequence[StudentRecord], room: RoomGeometry,
                           rules: SeatingRules) -> Tuple[Grid, int]:
        """Row-wise filling."""
        grid = self.create_empty_grid(room.rows, room.columns)
        index = 0

        for row in range(room.rows):
            if is_skipped_row(row, rules.skip_rows):
                continue
            for col in range(room.columns):
                if index >= len(students):
                    return grid, index
                index = self._fill_cell(grid, row, col, students, index, rules.double_columns)

        return grid, index

    def arrange_vertical(self, students: Sequence[StudentRecord], room: RoomGeometry,
                         rules: SeatingRules) -> Tuple[Grid, int]:
        """Column-wise filling."""
        grid = self.create_empty_grid(room.rows, room.columns)
        index = 0

        for col in range(room.columns):
            for row in range(room.rows):
                if is_skipped_row(row, rules.skip_rows):
                    continue
                if index >= len(students):
                    return grid, index
                index = self._fill_cell(grid, row, col, students, index, rules.double_columns)

        return grid, index

    def seat_assignments(self, grid: Grid) -> List[Dict]:
        """
        Flatten a built grid into one record per seated student.

        Positions come straight from the grid, so they stay correct with
        skipped rows and double columns.
        """
        records = []
        for row_idx, row in enumerate(grid):
            for col_idx, seat in enumerate(row):
                for seat_idx, student in enumerate(seat.occupants):
                    records.append({
                        'enrollment_no': student.enrollment_no,
                        'name': student.name,
                        'branch': student.branch,
                        'row': row_idx,
                        'column': col_idx,
                        'seat': seat_idx,
                    })
        return records

    def generate_seating(self, students: Sequence[StudentRecord], room: RoomGeometry,
                         rules: SeatingRules) -> RoomAllocation:
        """
        Lay an already ordered chunk of students out on one room's grid.

        Returns:
            RoomAllocation holding only the students that got a seat.

        Raises:
            InvalidRulesError if the rules have not been validated and hold
            an unknown arrangement.
        """
        if rules.arrangement not in self.arrangements:
            rules = self.validate_rules(rules)
        grid, placed = self.arrangements[rules.arrangement](students, room, rules)
        seated = list(students[:placed])
        utilization = round(placed / room.capacity * 100, 1)
        return RoomAllocation(
            room=room,
            grid=grid,
            students=seated,
            utilization=utilization,
            seats=self.seat_assignments(grid),
        )

    # Multi-room allocation

    def allocate_multiple_rooms(self, students: Sequence[StudentRecord], rooms: Sequence[RoomGeometry],
                                rules: SeatingRules) -> AllocationResult:
        """
        Fill rooms strictly in the given order.

        Each room takes up to its capacity from the front of the queue. Anyone
        the grid could not seat goes back to the front for the next room.
        """
        allocations = []
        remaining = list(students)

        for room in rooms:
            if not remaining:
                break

            chunk = remaining[:room.capacity]
            allocation = self.generate_seating(chunk, room, rules)
            placed = len(allocation.students)
            remaining = remaining[placed:]

            if placed == 0:
                continue

            self.logger.debug(
                f"Room {room.room_id}: seated {placed}/{room.capacity} ({allocation.utilization}%)"
            )
            allocations.append(allocation)

        return AllocationResult(allocations=allocations, unallocated=remaining)

    # Entry point

    def generate_seating_plan(self, students: Sequence[StudentRecord], rooms: Sequence[RoomGeometry],
                              rules: SeatingRules, rng: Optional[random.Random] = None,
                              seed: Optional[int] = None) -> AllocationResult:
        """
        Validate, filter, order and allocate.

        Raises:
            InvalidGeometryError, InvalidRulesError before any allocation.
        """
        self.validate_rooms(rooms)
        rules = self.validate_rules(rules, rooms)

        if rng is None and seed is not None:
            rng = random.Random(seed)

        eligible = self.apply_filters(students, rules)
        ordered = self.apply_sorting(eligible, rules, rng)
        result = self.allocate_multiple_rooms(ordered, rooms, rules)

        self.logger.info(
            f"Seating plan: {len(students)} on roster, {len(eligible)} eligible, "
            f"{result.total_allocated} seated in {len(result.allocations)} room(s), "
            f"{len(result.unallocated)} unallocated"
        )
        return result


# Global wrapper functions for convenience
def generate_seating_plan(students: Sequence[StudentRecord], rooms: Sequence[RoomGeometry],
                          rules: Optional[SeatingRules] = None,
                          rng: Optional[random.Random] = None,
                          seed: Optional[int] = None) -> AllocationResult:
    """
    Convenience wrapper for the SeatingAlgorithm class.
    """
    algorithm = SeatingAlgorithm()
    return algorithm.generate_seating_plan(students, rooms, rules or SeatingRules(), rng, seed)


# Global instance for import
seating_algorithm = SeatingAlgorithm()

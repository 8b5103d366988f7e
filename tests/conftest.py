import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from models import RoomGeometry, SeatingRules, StudentRecord  # noqa: E402


def make_student(enrollment_no, branch, **kwargs):
    return StudentRecord(
        enrollment_no=enrollment_no,
        name=kwargs.pop('name', f"Student {enrollment_no}"),
        branch=branch,
        program=kwargs.pop('program', 'B.TECH'),
        semester=kwargs.pop('semester', 'V'),
        **kwargs
    )


def make_roster(counts):
    """counts: list of (branch, n) pairs, students numbered per branch."""
    roster = []
    for branch, n in counts:
        for i in range(1, n + 1):
            roster.append(make_student(f"{branch}{i:03d}", branch))
    return roster


@pytest.fixture
def six_students():
    # Deliberately out of enrollment order within each branch
    return [
        make_student('A003', 'A'),
        make_student('B002', 'B'),
        make_student('A001', 'A'),
        make_student('B001', 'B'),
        make_student('A002', 'A'),
        make_student('B003', 'B'),
    ]


@pytest.fixture
def no_filter_rules():
    return SeatingRules(branch_mixing=False)


@pytest.fixture
def room():
    return RoomGeometry(rows=3, columns=2, capacity=6, room_number='101')

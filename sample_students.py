#!/usr/bin/env python3
"""
Sample exam roster and rooms for trying out the seating generator.
"""
import pandas as pd


def _student(enrollment_no, name, branch, attendance=90, status='Regular', fee_status='Paid'):
    return {
        'enrollment_no': enrollment_no,
        'name': name,
        'program': 'B.TECH',
        'branch': branch,
        'semester': 'V',
        'year': '2021',
        'section': 'A',
        'attendance_percent': attendance,
        'status': status,
        'fee_status': fee_status,
    }


SAMPLE_STUDENTS = [
    # CSE
    _student('21BTECSE001', 'John Smith', 'CSE', 92),
    _student('21BTECSE002', 'Emma Johnson', 'CSE', 88),
    _student('21BTECSE003', 'Michael Brown', 'CSE', 64),
    _student('21BTECSE004', 'Sarah Davis', 'CSE', 97),
    _student('21BTECSE005', 'David Wilson', 'CSE', 81, fee_status='Pending'),
    _student('21BTECSE006', 'Lisa Anderson', 'CSE', 90),
    _student('21BTECSE007', 'Robert Taylor', 'CSE', 78, status='Backlog'),
    _student('21BTECSE008', 'Jennifer White', 'CSE', 85),

    # ECE
    _student('21BTEECE001', 'Christopher Lee', 'ECE', 91),
    _student('21BTEECE002', 'Amanda Martinez', 'ECE', 76),
    _student('21BTEECE003', 'James Garcia', 'ECE', 83),
    _student('21BTEECE004', 'Ashley Rodriguez', 'ECE', 70),
    _student('21BTEECE005', 'Daniel Hernandez', 'ECE', 95),
    _student('21BTEECE006', 'Jessica Lopez', 'ECE', 88, fee_status='Partial'),

    # ME
    _student('21BTEME0001', 'Andrew Miller', 'ME', 86),
    _student('21BTEME0002', 'Stephanie Moore', 'ME', 79),
    _student('21BTEME0003', 'Joshua Jackson', 'ME', 93),
    _student('21BTEME0004', 'Megan Thomas', 'ME', 74),
    _student('21BTEME0005', 'Kevin Thompson', 'ME', 89),

    # CE
    _student('21BTECE0001', 'Brandon Hall', 'CE', 82),
    _student('21BTECE0002', 'Samantha Allen', 'CE', 99),
    _student('21BTECE0003', 'Ryan Young', 'CE', 68, status='Ex'),
    _student('21BTECE0004', 'Nicole King', 'CE', 87),
]

SAMPLE_ROOMS = [
    {'room_number': '101', 'building_name': 'Main Block', 'floor_name': 'Ground', 'rows': 4, 'columns': 3, 'capacity': 12},
    {'room_number': '102', 'building_name': 'Main Block', 'floor_name': 'Ground', 'rows': 3, 'columns': 3, 'capacity': 9},
    {'room_number': 'LAB-1', 'building_name': 'Science Block', 'floor_name': 'First', 'rows': 2, 'columns': 4, 'capacity': 8},
]


def create_sample_student_data(output_file='sample_students.xlsx'):
    """Write the sample roster to Excel using the import column headers."""
    df = pd.DataFrame(SAMPLE_STUDENTS).rename(columns={
        'enrollment_no': 'Enrollment No',
        'name': 'Name',
        'program': 'Program',
        'branch': 'Branch',
        'semester': 'Semester',
        'year': 'Year',
        'section': 'Section',
        'attendance_percent': 'Attendance',
        'status': 'Status',
        'fee_status': 'Fee Status',
    })
    df.to_excel(output_file, index=False, engine='openpyxl')

    print(f"Sample student data created in '{output_file}'")
    print(f"Total students: {len(df)}")
    print(f"Branches: {df['Branch'].value_counts().to_dict()}")

    return output_file


if __name__ == "__main__":
    create_sample_student_data()

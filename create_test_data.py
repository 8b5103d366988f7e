#!/usr/bin/env python3
"""
Create a large synthetic exam roster for load-testing the seating generator.
"""
import random
import pandas as pd
from faker import Faker

BRANCHES = {
    'CSE': 120,
    'ECE': 90,
    'ME': 75,
    'CE': 60,
    'EE': 45,
}

STATUS_WEIGHTS = {'Regular': 0.88, 'Backlog': 0.09, 'Ex': 0.03}
FEE_WEIGHTS = {'Paid': 0.85, 'Pending': 0.10, 'Partial': 0.05}


def create_exam_test_data(output_file='exam_students_test_data.xlsx', seed=None, branches=None):
    """Generate a roster for one semester's exam and save it to Excel."""
    rng = random.Random(seed)
    fake = Faker('en_IN')
    if seed is not None:
        fake.seed_instance(seed)

    students_data = []
    for branch, count in (branches or BRANCHES).items():
        for i in range(count):
            students_data.append({
                'Enrollment No': f"21BTE{branch}{str(i + 1).zfill(4)}",
                'Name': fake.name(),
                'Program': 'B.Tech',
                'Branch': branch,
                'Semester': 'V',
                'Year': '2021',
                'Section': rng.choice(['A', 'B']),
                'Status': rng.choices(list(STATUS_WEIGHTS), weights=list(STATUS_WEIGHTS.values()))[0],
                'Attendance': round(rng.uniform(55, 100), 1),
                'Fee Status': rng.choices(list(FEE_WEIGHTS), weights=list(FEE_WEIGHTS.values()))[0],
            })

    df = pd.DataFrame(students_data)

    # Shuffle to make it more realistic
    df = df.sample(frac=1, random_state=seed).reset_index(drop=True)
    df.to_excel(output_file, index=False, engine='openpyxl')

    print(f"Exam test data created: '{output_file}'")
    print(f"Total Students: {len(df)}")
    print(f"Branch Distribution: {df['Branch'].value_counts().to_dict()}")
    print(f"Status Distribution: {df['Status'].value_counts().to_dict()}")

    return output_file, df


def create_sample_rooms():
    """Room configurations large enough for the generated roster."""
    rooms = [
        {'room_number': 'EXAM-HALL-A', 'rows': 10, 'columns': 10, 'capacity': 100},
        {'room_number': 'EXAM-HALL-B', 'rows': 8, 'columns': 8, 'capacity': 64},
        {'room_number': 'LIBRARY-HALL', 'rows': 8, 'columns': 6, 'capacity': 48},
        {'room_number': 'COMPUTER-LAB', 'rows': 6, 'columns': 6, 'capacity': 30},
        {'room_number': 'SEMINAR-HALL', 'rows': 12, 'columns': 10, 'capacity': 120},
        {'room_number': 'DRAWING-HALL', 'rows': 6, 'columns': 5, 'capacity': 30},
    ]

    for room in rooms:
        print(f"   {room['room_number']}: {room['rows']}×{room['columns']} = {room['capacity']} students")

    return rooms


if __name__ == "__main__":
    create_exam_test_data()
    create_sample_rooms()

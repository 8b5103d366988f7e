import io
import logging
import zipfile
from urllib.parse import quote

import openpyxl
import pandas as pd
import pytest

import app as app_module
from sample_students import SAMPLE_ROOMS, SAMPLE_STUDENTS

logging.disable(logging.CRITICAL)

STATE_KEYS = ['STUDENT_DATA', 'ROOMS_DATA', 'SEATING_RESULT', 'GENERATION_CONFIG']


@pytest.fixture
def client(tmp_path):
    flask_app = app_module.app
    flask_app.config.update(
        TESTING=True,
        UPLOAD_FOLDER=str(tmp_path / 'uploads'),
        EXPORT_FOLDER=str(tmp_path / 'exports'),
    )
    for key in STATE_KEYS:
        flask_app.config.pop(key, None)
    with flask_app.test_client() as client:
        yield client
    for key in STATE_KEYS:
        flask_app.config.pop(key, None)


def add_rooms(client, *rooms):
    for room in rooms:
        assert client.post('/add_room', json=room).status_code == 201


def add_students(client, branch, count, **extra):
    for i in range(1, count + 1):
        payload = {'enrollment_no': f'21BTE{branch}{i:03d}', 'name': f'{branch} {i}',
                   'program': 'B.Tech', 'branch': branch, 'semester': 'V'}
        payload.update(extra)
        assert client.post('/add_student', json=payload).status_code == 201


def test_add_student_rejects_duplicates_and_missing_fields(client):
    add_students(client, 'CSE', 1)

    duplicate = client.post('/add_student', json={
        'enrollment_no': '21BTECSE001', 'name': 'x', 'program': 'p', 'branch': 'CSE', 'semester': 'V'})
    assert duplicate.status_code == 400

    missing = client.post('/add_student', json={'enrollment_no': '21BTECSE009'})
    assert missing.status_code == 400
    assert len(client.get('/get_student_data').get_json()) == 1


def test_add_room_validates_geometry(client):
    assert client.post('/add_room', json={'room_number': '101', 'rows': 0, 'columns': 4}).status_code == 400
    assert client.post('/add_room', json={'room_number': '101', 'rows': 'x', 'columns': 4}).status_code == 400

    add_rooms(client, {'room_number': '101', 'rows': 3, 'columns': 4})
    rooms = client.get('/get_rooms_data').get_json()
    assert rooms[0]['capacity'] == 12
    assert client.post('/add_room', json={'room_number': '101', 'rows': 2, 'columns': 2}).status_code == 400


def test_generate_seating_and_preview(client):
    add_students(client, 'CSE', 4)
    add_students(client, 'ECE', 4)
    add_rooms(client, {'room_number': '101', 'rows': 3, 'columns': 2},
              {'room_number': '102', 'rows': 1, 'columns': 1})

    response = client.post('/generate_seating', json={'rules': {'branchMixing': True}, 'seed': 4})
    body = response.get_json()

    assert response.status_code == 200
    assert body['total_allocated'] == 7
    assert body['unallocated_students'] == 1

    preview = client.get('/preview').get_json()
    first_room = preview['allocations'][0]
    assert first_room['room']['room_id'] == '101'
    assert [s['branch'] for s in first_room['students']] == ['CSE', 'ECE'] * 3
    assert len(first_room['grid']) == 3


def test_generate_seating_applies_default_filters(client):
    add_students(client, 'CSE', 2)
    add_students(client, 'ME', 2, attendance_percent=50)
    add_rooms(client, {'room_number': '101', 'rows': 2, 'columns': 2})

    body = client.post('/generate_seating', json={}).get_json()

    assert body['total_allocated'] == 2
    assert body['unallocated_students'] == 0


def test_generate_seating_honours_room_order(client):
    add_students(client, 'CSE', 3)
    add_rooms(client, {'room_number': 'A', 'rows': 2, 'columns': 2},
              {'room_number': 'B', 'rows': 1, 'columns': 2})

    client.post('/generate_seating', json={'room_ids': ['B', 'A'], 'rules': {'branch_mixing': False}})
    preview = client.get('/preview').get_json()

    assert [a['room']['room_id'] for a in preview['allocations']] == ['B', 'A']
    assert [a['total_students'] for a in preview['allocations']] == [2, 1]


@pytest.mark.parametrize('payload', [
    {'rules': {'arrangement': 'diagonal'}},
    {'rules': {'skipRows': -1}},
    {'rules': {'doubleColumns': [9]}},
    {'rules': {'minAttendance': '80'}},
    {'rules': {'branchMixing': 'maybe'}},
    {'rules': {'allowedStatus': 5}},
    {'room_ids': ['nope']},
])
def test_generate_seating_rejects_bad_requests(client, payload):
    add_students(client, 'CSE', 2)
    add_rooms(client, {'room_number': '101', 'rows': 2, 'columns': 2})

    response = client.post('/generate_seating', json=payload)

    assert response.status_code == 400
    assert client.get('/preview').status_code == 404


def test_generate_seating_reads_form_style_rule_values(client):
    add_students(client, 'CSE', 2)
    add_students(client, 'ECE', 1, status='Backlog')
    add_rooms(client, {'room_number': '101', 'rows': 2, 'columns': 2})

    body = client.post('/generate_seating', json={
        'rules': {'allowedStatus': 'Regular', 'branchMixing': 'false'}}).get_json()

    assert body['total_allocated'] == 2
    assert client.get('/get_seating_status').get_json()['generation_config']['rules']['branch_mixing'] is False


def test_exam_eligible_lists_scope_and_branch_counts(client):
    add_students(client, 'ECE', 2)
    add_students(client, 'CSE', 3)
    add_students(client, 'ME', 1, attendance_percent=40)
    client.post('/add_student', json={'enrollment_no': '20BTECSE001', 'name': 'Old', 'program': 'B.Tech',
                                      'branch': 'CSE', 'semester': 'VII'})

    response = client.post('/exam_eligible', json={'semesters': ['V']})
    body = response.get_json()

    assert response.status_code == 200
    assert body['total'] == 5
    assert body['branch_stats'] == {'CSE': 3, 'ECE': 2}
    assert [s['enrollment_no'] for s in body['students']][:2] == ['21BTECSE001', '21BTECSE002']

    narrowed = client.post('/exam_eligible', json={'branches': 'ECE', 'minAttendance': None}).get_json()
    assert narrowed['branch_stats'] == {'ECE': 2}

    assert client.post('/exam_eligible', json={'minAttendance': 'high'}).status_code == 400


def test_export_attendance(client):
    add_students(client, 'CSE', 3)
    add_rooms(client, {'room_number': '101', 'rows': 2, 'columns': 2})
    client.post('/generate_seating', json={'rules': {'branchMixing': False}})

    response = client.get('/export_attendance/101')

    assert response.status_code == 200
    ws = openpyxl.load_workbook(io.BytesIO(response.data)).active
    assert [ws.cell(row=r, column=3).value for r in range(5, 8)] == ['21BTECSE001', '21BTECSE002', '21BTECSE003']
    assert client.get('/export_attendance/999').status_code == 404


def test_upload_students_reads_excel(client):
    buffer = io.BytesIO()
    pd.DataFrame([
        {'Enrollment No': '21BTE0001', 'Name': 'A', 'Program': 'BT', 'Branch': 'ME', 'Semester': '3'},
        {'Enrollment No': 'bad', 'Name': 'B', 'Program': 'BT', 'Branch': 'ME', 'Semester': '3'},
    ]).to_excel(buffer, index=False, engine='openpyxl')
    buffer.seek(0)

    response = client.post('/upload_students', data={'file': (buffer, 'roster.xlsx')},
                           content_type='multipart/form-data')

    body = response.get_json()
    assert response.status_code == 200
    assert body['valid_students'] == 1
    assert len(body['errors']) == 1
    assert client.get('/get_student_data').get_json()[0]['enrollment_no'] == '21BTE0001'


def test_upload_students_rejects_other_file_types(client):
    response = client.post('/upload_students', data={'file': (io.BytesIO(b'x'), 'roster.csv')},
                           content_type='multipart/form-data')
    assert response.status_code == 400


def test_sample_data_exports(client):
    client.post('/load_sample_data')
    assert len(client.get('/get_student_data').get_json()) == len(SAMPLE_STUDENTS)
    assert len(client.get('/get_rooms_data').get_json()) == len(SAMPLE_ROOMS)

    assert client.post('/generate_seating', json={'seed': 1, 'rules': {'doubleColumns': [2]}}).status_code == 200
    room_id = quote(client.get('/preview').get_json()['allocations'][0]['room']['room_id'])

    grid = client.get(f'/export_room_grid/{room_id}')
    assert grid.status_code == 200
    assert grid.headers['Content-Disposition'].startswith('attachment')

    assert client.get(f'/export_room_plan/{room_id}').status_code == 200
    assert client.get('/export_room_plan/unknown').status_code == 404

    bundle = client.get('/export_all_plans_zip')
    assert bundle.status_code == 200
    with zipfile.ZipFile(io.BytesIO(bundle.data)) as zf:
        assert any(name.endswith('_grid_layout.xlsx') for name in zf.namelist())


def test_download_template(client):
    response = client.get('/download_template')
    assert response.status_code == 200
    df = pd.read_excel(io.BytesIO(response.data))
    assert 'Enrollment No' in df.columns


def test_delete_and_clear(client):
    add_students(client, 'CSE', 2)
    add_rooms(client, {'room_number': '101', 'rows': 2, 'columns': 2})

    assert client.post('/delete_student', json={'enrollment_no': '21BTECSE001'}).status_code == 200
    assert client.post('/delete_student', json={'enrollment_no': '21BTECSE001'}).status_code == 404
    assert client.post('/delete_room', json={'room_id': '101'}).status_code == 200

    assert client.post('/clear_data', json={'data_type': 'everything'}).status_code == 400
    assert client.post('/clear_data', json={'data_type': 'all'}).status_code == 200
    assert client.get('/get_student_data').get_json() == []
    assert client.get('/get_seating_status').get_json()['seating_plan'] == {}

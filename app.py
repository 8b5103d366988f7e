import os
import logging
from flask import Flask, request, jsonify, send_file
from werkzeug.utils import secure_filename

from excel_handler import ExcelHandler
from models import DEFAULT_SEATING_RULES, RoomGeometry, SeatingRules, StudentRecord
from sample_students import SAMPLE_ROOMS, SAMPLE_STUDENTS
from seating_algorithm import SeatingAlgorithm, SeatingError

# Set up logging
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "DEBUG"))

app = Flask(__name__)
app.secret_key = os.environ.get("SESSION_SECRET", "dev-secret-key-change-in-production")

# Configuration
ALLOWED_EXTENSIONS = {'xlsx', 'xls'}

app.config['UPLOAD_FOLDER'] = os.environ.get('UPLOAD_FOLDER', 'uploads')
app.config['EXPORT_FOLDER'] = os.environ.get('EXPORT_FOLDER', 'exports')
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max file size

seating_algorithm = SeatingAlgorithm()


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def _folder(key):
    path = app.config[key]
    os.makedirs(path, exist_ok=True)
    return path


def _error(message, status=400):
    return jsonify({'message': message}), status


def _students():
    return [StudentRecord.from_dict(s) for s in app.config.get('STUDENT_DATA', [])]


def _rooms(room_ids=None):
    rooms_data = app.config.get('ROOMS_DATA', [])
    if room_ids:
        by_id = {r['room_id']: r for r in rooms_data}
        unknown = [room_id for room_id in room_ids if room_id not in by_id]
        if unknown:
            raise ValueError(f"Unknown room(s): {', '.join(unknown)}")
        rooms_data = [by_id[room_id] for room_id in room_ids]
    return [RoomGeometry.from_dict(r) for r in rooms_data]


def _stored_result():
    return app.config.get('SEATING_RESULT')


@app.route('/upload_students', methods=['POST'])
def upload_students():
    if 'file' not in request.files:
        return _error('No file selected')

    file = request.files['file']
    if not file.filename:
        return _error('No file selected')
    if not allowed_file(file.filename):
        return _error('Invalid file type. Please upload an Excel file (.xlsx or .xls)')

    try:
        filepath = os.path.join(_folder('UPLOAD_FOLDER'), secure_filename(file.filename))
        file.save(filepath)

        excel_handler = ExcelHandler(_folder('EXPORT_FOLDER'))
        students = excel_handler.read_student_data(filepath)
        if students is None:
            return _error('Error processing Excel file. Please check the format.')

        app.config['STUDENT_DATA'] = students.to_dict('records')
        return jsonify({
            'message': f'Successfully uploaded {len(students)} students',
            'valid_students': len(students),
            'errors': excel_handler.last_errors,
        })

    except Exception as e:
        logging.error(f"Error uploading file: {str(e)}")
        return _error(f'Error uploading file: {str(e)}', 500)


@app.route('/add_student', methods=['POST'])
def add_student():
    data = request.get_json(silent=True) or request.form.to_dict()
    required = ['enrollment_no', 'name', 'program', 'branch', 'semester']
    if not all(str(data.get(field, '')).strip() for field in required):
        return _error(f"Fields required: {', '.join(required)}")

    try:
        student = StudentRecord.from_dict({k: (v.strip() if isinstance(v, str) else v) for k, v in data.items()})
    except ValueError:
        return _error('Invalid number format for attendance')

    students_data = app.config.setdefault('STUDENT_DATA', [])
    if student.enrollment_no in {s['enrollment_no'] for s in students_data}:
        return _error('Enrollment number already exists')

    students_data.append(student.to_dict())
    return jsonify({'message': 'Student added successfully', 'student': student.to_dict()}), 201


@app.route('/delete_student', methods=['POST'])
def delete_student():
    data = request.get_json(silent=True) or request.form.to_dict()
    enrollment_no = str(data.get('enrollment_no', '')).strip()
    if not enrollment_no:
        return _error('Enrollment number is required')

    students_data = app.config.get('STUDENT_DATA', [])
    remaining = [s for s in students_data if s['enrollment_no'] != enrollment_no]
    if len(remaining) == len(students_data):
        return _error('Student not found', 404)

    app.config['STUDENT_DATA'] = remaining
    return jsonify({'message': 'Student deleted successfully'})


@app.route('/add_room', methods=['POST'])
def add_room():
    data = request.get_json(silent=True) or request.form.to_dict()
    try:
        room_number = str(data.get('room_number', '')).strip()
        rows = int(data.get('rows', 0))
        columns = int(data.get('columns', 0))
        capacity = int(data.get('capacity') or rows * columns)
    except (TypeError, ValueError):
        return _error('Invalid number format for rows, columns, or capacity')

    if not room_number or rows <= 0 or columns <= 0 or capacity <= 0:
        return _error('Invalid room configuration')

    room = RoomGeometry(
        rows=rows,
        columns=columns,
        capacity=capacity,
        room_number=room_number,
        building_id=data.get('building_id'),
        building_name=str(data.get('building_name', '')).strip(),
        floor_name=str(data.get('floor_name', '')).strip(),
    )

    rooms_data = app.config.setdefault('ROOMS_DATA', [])
    if room.room_id in {r['room_id'] for r in rooms_data}:
        return _error('Room ID already exists')

    rooms_data.append(room.to_dict())
    return jsonify({
        'message': f'Room added with {rows}×{columns} grid (capacity {capacity})',
        'room': room.to_dict(),
    }), 201


@app.route('/delete_room', methods=['POST'])
def delete_room():
    data = request.get_json(silent=True) or request.form.to_dict()
    room_id = str(data.get('room_id', '')).strip()
    if not room_id:
        return _error('Room ID is required')

    rooms_data = app.config.get('ROOMS_DATA', [])
    remaining = [r for r in rooms_data if r['room_id'] != room_id]
    if len(remaining) == len(rooms_data):
        return _error('Room not found', 404)

    app.config['ROOMS_DATA'] = remaining
    return jsonify({'message': 'Room deleted successfully'})


@app.route('/generate_seating', methods=['POST'])
def generate_seating():
    data = request.get_json(silent=True) or {}
    try:
        rules = SeatingRules.from_dict(data.get('rules') or {}, defaults=DEFAULT_SEATING_RULES)
        rooms = _rooms(data.get('room_ids'))
        result = seating_algorithm.generate_seating_plan(
            _students(), rooms, rules, seed=data.get('seed')
        )
    except SeatingError as e:
        logging.warning(f"Rejected seating request: {str(e)}")
        return _error(str(e))
    except ValueError as e:
        return _error(str(e))
    except Exception as e:
        logging.error(f"Error generating seating: {str(e)}")
        return _error(f'Error generating seating plan: {str(e)}', 500)

    # Store results for preview and export
    app.config['SEATING_RESULT'] = result
    app.config['GENERATION_CONFIG'] = {'rules': rules.to_dict(), 'seed': data.get('seed')}

    return jsonify({
        'message': f'Seating plan generated successfully! {len(result.unallocated)} students remain unallocated.',
        'rooms_used': len(result.allocations),
        'total_allocated': result.total_allocated,
        'unallocated_students': len(result.unallocated),
    })


@app.route('/exam_eligible', methods=['POST'])
def exam_eligible():
    """List students an exam would seat, sorted by branch, with per-branch counts"""
    data = request.get_json(silent=True) or {}
    try:
        rules = seating_algorithm.validate_rules(SeatingRules.from_dict(data, defaults=DEFAULT_SEATING_RULES))
    except SeatingError as e:
        logging.warning(f"Rejected eligibility request: {str(e)}")
        return _error(str(e))

    students = seating_algorithm.sort_by_branch(seating_algorithm.apply_filters(_students(), rules))
    return jsonify({
        'students': [s.to_dict() for s in students],
        'total': len(students),
        'branch_stats': seating_algorithm.branch_counts(students),
    })


@app.route('/preview')
def preview():
    result = _stored_result()
    if result is None:
        return _error('No seating plan available. Please generate one first.', 404)
    return jsonify(result.to_dict())


@app.route('/get_student_data')
def get_student_data():
    return jsonify(app.config.get('STUDENT_DATA', []))


@app.route('/get_rooms_data')
def get_rooms_data():
    return jsonify(app.config.get('ROOMS_DATA', []))


@app.route('/get_seating_status')
def get_seating_status():
    """Get current seating plan status for reports"""
    result = _stored_result()
    return jsonify({
        'seating_plan': result.to_dict() if result else {},
        'generation_config': app.config.get('GENERATION_CONFIG', {}),
    })


@app.route('/load_sample_data', methods=['POST'])
def load_sample_data():
    app.config['STUDENT_DATA'] = [dict(s) for s in SAMPLE_STUDENTS]
    app.config['ROOMS_DATA'] = [RoomGeometry.from_dict(r).to_dict() for r in SAMPLE_ROOMS]
    return jsonify({
        'message': f'Sample data loaded: {len(SAMPLE_STUDENTS)} students and {len(SAMPLE_ROOMS)} rooms configured'
    })


@app.route('/clear_data', methods=['POST'])
def clear_data():
    data = request.get_json(silent=True) or request.form.to_dict()
    data_type = data.get('data_type')

    keys = {
        'students': ['STUDENT_DATA'],
        'rooms': ['ROOMS_DATA'],
        'seating': ['SEATING_RESULT', 'GENERATION_CONFIG'],
    }
    keys['all'] = [k for group in keys.values() for k in group]

    if data_type not in keys:
        return _error(f'Unknown data type: {data_type}')

    for key in keys[data_type]:
        app.config.pop(key, None)
    return jsonify({'message': f'{data_type.capitalize()} data cleared'})


@app.route('/download_template')
def download_template():
    excel_handler = ExcelHandler(_folder('EXPORT_FOLDER'))
    filepath = excel_handler.generate_sample_template()
    if not filepath:
        return _error('Error generating template', 500)
    return send_file(os.path.abspath(filepath), as_attachment=True, download_name=os.path.basename(filepath))


def _current_rules():
    config = app.config.get('GENERATION_CONFIG', {})
    return seating_algorithm.validate_rules(SeatingRules.from_dict(config.get('rules') or DEFAULT_SEATING_RULES))


@app.route('/export_room_plan/<room_id>')
def export_room_plan(room_id):
    """Export one room's seat list to Excel"""
    result = _stored_result()
    allocation = result.find_room(room_id) if result else None
    if allocation is None:
        return _error('Room seating plan not found', 404)

    filepath = ExcelHandler(_folder('EXPORT_FOLDER')).export_room_seating(allocation)
    if not filepath:
        return _error('Error exporting room plan', 500)
    return send_file(os.path.abspath(filepath), as_attachment=True, download_name=os.path.basename(filepath))


@app.route('/export_room_grid/<room_id>')
def export_room_grid(room_id):
    """Export one room's seating plan in grid format"""
    result = _stored_result()
    allocation = result.find_room(room_id) if result else None
    if allocation is None:
        return _error('Room seating plan not found', 404)

    filepath = ExcelHandler(_folder('EXPORT_FOLDER')).export_room_grid_layout(allocation, _current_rules())
    if not filepath:
        return _error('Error exporting grid layout', 500)
    return send_file(os.path.abspath(filepath), as_attachment=True, download_name=os.path.basename(filepath))


@app.route('/export_attendance/<room_id>')
def export_attendance(room_id):
    """Export one room's attendance sheet"""
    result = _stored_result()
    allocation = result.find_room(room_id) if result else None
    if allocation is None:
        return _error('Room seating plan not found', 404)

    filepath = ExcelHandler(_folder('EXPORT_FOLDER')).export_attendance_sheet(allocation)
    if not filepath:
        return _error('Error exporting attendance sheet', 500)
    return send_file(os.path.abspath(filepath), as_attachment=True, download_name=os.path.basename(filepath))


@app.route('/export_all_plans_zip')
def export_all_plans_zip():
    """Export all rooms as a ZIP with seat lists, grids and the summary"""
    result = _stored_result()
    if result is None:
        return _error('No seating plan found', 404)

    zip_filepath = ExcelHandler(_folder('EXPORT_FOLDER')).export_all_rooms_zip(result, _current_rules())
    if not zip_filepath:
        return _error('Error exporting complete plan', 500)
    return send_file(os.path.abspath(zip_filepath), as_attachment=True, download_name=os.path.basename(zip_filepath))


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000, debug=True)

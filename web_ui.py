#!/usr/bin/env python3
"""
Web UI for the Coach Feedback Manager.
Flask JSON application covering login, operator single entry, the admin
finder (search, edit, delete, export) and the spreadsheet upload flow.
"""

import io
import uuid
import logging
from collections import OrderedDict
from functools import wraps
from typing import Any, Dict

from flask import Flask, g, jsonify, request, send_file, session
from werkzeug.utils import secure_filename

from coach_feedback.config.config_manager import ConfigManager
from coach_feedback.models.feedback_data import FeedbackRecord, RecordFormatError
from coach_feedback.services.api_client import FeedbackAPIClient, FeedbackAPIError, RecordNotFoundError
from coach_feedback.services.bulk_submitter import BulkSubmitter
from coach_feedback.services.excel_writer import ReportWorkbookWriter
from coach_feedback.services.pdf_renderer import LayoutMode, PdfRenderer, RenderError
from coach_feedback.services.record_validator import RecordValidator, validate_password_change
from coach_feedback.services.report_aggregator import ReportAggregator
from coach_feedback.services.sessions import (
    SearchSession,
    UploadSession,
    begin_edit,
    next_feedback_no,
    remove_record,
    replace_result,
    reset_upload,
    revise_staged_record,
    run_search,
    save_edit,
    stage_upload,
    submit_single,
    submit_upload,
    upload_sheets,
)
from coach_feedback.services.sheet_extractor import SheetExtractor, WorkbookReadError
from coach_feedback.utils.file_validator import UploadFileValidator
from coach_feedback.utils.logging_config import setup_logging

config_manager = ConfigManager()

app = Flask(__name__)
app.secret_key = config_manager.get_secret_key()
# headroom over the workbook limit for multipart overhead
app.config['MAX_CONTENT_LENGTH'] = (config_manager.get_max_file_size_mb() + 1) * 1024 * 1024

PDF_MIMETYPE = 'application/pdf'
XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# Initialize logging
logging_config, error_handler = setup_logging(log_level=config_manager.get_log_level(), enable_console=False)
logger = logging.getLogger(__name__)

extractor = SheetExtractor()
validator = RecordValidator()
aggregator = ReportAggregator()
renderer = PdfRenderer(config_manager.get_letterhead(), aggregator)
workbook_writer = ReportWorkbookWriter(aggregator)
file_validator = UploadFileValidator(config_manager.get_max_file_size_mb())

# Staged uploads and finder results per browser session, keyed by session['state_id'].
# Least recently used entries are evicted past MAX_SESSION_STATES.
MAX_SESSION_STATES = 200
SESSION_STATE: 'OrderedDict[str, Dict[str, Any]]' = OrderedDict()


def get_api_client() -> FeedbackAPIClient:
    """
    Client for the feedback service, authenticated as the current user.

    One client per request; it is closed when the request ends.
    """
    if 'api_client' not in g:
        client = FeedbackAPIClient(config_manager)
        if session.get('token'):
            client.set_token(session['token'])
        g.api_client = client
    return g.api_client


@app.teardown_appcontext
def close_api_client(exc):
    client = g.pop('api_client', None)
    if client is not None:
        client.close()


def session_state() -> Dict[str, Any]:
    state_id = session.get('state_id')
    if state_id in SESSION_STATE:
        SESSION_STATE.move_to_end(state_id)
        return SESSION_STATE[state_id]

    state_id = uuid.uuid4().hex
    session['state_id'] = state_id
    SESSION_STATE[state_id] = {'upload': UploadSession(), 'search': SearchSession()}
    while len(SESSION_STATE) > MAX_SESSION_STATES:
        evicted, _ = SESSION_STATE.popitem(last=False)
        logger.info(f"Evicted session state {evicted}")
    return SESSION_STATE[state_id]


def drop_session_state() -> None:
    SESSION_STATE.pop(session.get('state_id'), None)


def error_response(message: str, status: int = 400, **extra):
    payload = {'success': False, 'message': message}
    payload.update(extra)
    return jsonify(payload), status


def role_required(*roles):
    """Require a logged-in user, optionally with one of ``roles``."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            user = session.get('user')
            if not user:
                return error_response('Please login to continue', 401)
            if roles and user.get('role') not in roles:
                return error_response('You do not have access to this page', 403)
            return view(*args, **kwargs)
        return wrapped
    return decorator


login_required = role_required()


def pdf_response(data: bytes, filename: str):
    return send_file(io.BytesIO(data), as_attachment=True, download_name=filename, mimetype=PDF_MIMETYPE)


def xlsx_response(data: bytes, filename: str):
    return send_file(io.BytesIO(data), as_attachment=True, download_name=filename, mimetype=XLSX_MIMETYPE)


@app.errorhandler(RecordNotFoundError)
def record_not_found(e):
    error_handler.handle_api_error(e, request.path)
    return error_response(str(e) or 'Feedback not found', 404)


@app.errorhandler(FeedbackAPIError)
def feedback_service_error(e):
    error_handler.handle_api_error(e, request.path)
    return error_response(str(e), 502)


@app.errorhandler(RecordFormatError)
def malformed_record(e):
    return error_response(str(e), 400, field=e.field_name)


@app.errorhandler(RenderError)
def render_failed(e):
    return error_response(str(e), 400)


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error"""
    return error_response(f'File too large. Maximum size is {config_manager.get_max_file_size_mb()}MB.', 413)


@app.route('/')
def index():
    """Where the current user should land."""
    user = session.get('user')
    if not user:
        return jsonify({'success': True, 'user': None, 'redirect': '/login'})
    return jsonify({'success': True, 'user': user, 'redirect': '/finder' if user['role'] == 'admin' else '/feedback'})


@app.route('/login', methods=['POST'])
def login():
    body = request.get_json(silent=True) or {}
    user_id = (body.get('userId') or '').strip()
    password = body.get('password') or ''
    if not user_id or not password:
        return error_response('Please enter user ID and password')

    result = get_api_client().login(user_id, password)
    if not result.success:
        return error_response(result.message or 'Invalid credentials', 401)

    drop_session_state()
    session.clear()
    session['token'] = result.token
    session['user'] = {'userId': user_id, 'name': result.name, 'role': result.role}
    logger.info(f"User {user_id} logged in ({result.role})")
    return jsonify({
        'success': True,
        'user': session['user'],
        'redirect': '/finder' if result.role == 'admin' else '/feedback',
    })


@app.route('/logout', methods=['POST'])
def logout():
    drop_session_state()
    session.clear()
    return jsonify({'success': True})


@app.route('/account/password', methods=['POST'])
@login_required
def change_password():
    body = request.get_json(silent=True) or {}
    old_password = body.get('oldPassword', '')
    new_password = body.get('newPassword', '')
    confirm_password = body.get('confirmPassword', '')

    errors = validate_password_change(old_password, new_password, confirm_password)
    if errors:
        return error_response('Please fix the highlighted fields', 400, errors=errors)

    message = get_api_client().change_password(old_password, new_password, confirm_password)
    return jsonify({'success': True, 'message': message})


@app.route('/reference/<kind>')
@login_required
def reference_data(kind):
    if kind not in FeedbackAPIClient.REFERENCE_KINDS:
        return error_response(f"Unknown reference data '{kind}'", 404)
    return jsonify({'success': True, 'data': get_api_client().reference_data(kind)})


@app.route('/feedback/next-number')
@login_required
def feedback_next_number():
    train_no = request.args.get('trainNo', '').strip()
    day = request.args.get('date', '').strip()
    if not train_no or not day:
        return error_response('Please enter train number and date')
    return jsonify({'success': True, 'feedbackNo': next_feedback_no(get_api_client(), train_no, day)})


@app.route('/feedback', methods=['POST'])
@role_required('operator')
def create_feedback():
    """Operator single-entry submission."""
    record = FeedbackRecord.from_dict(request.get_json(silent=True) or {})
    result, stored = submit_single(record, get_api_client(), validator)
    if not result.valid:
        return error_response('Please fix the errors below', 400, validationErrors=result.validation_errors)
    return jsonify({'success': True, 'message': 'Feedback submitted successfully', 'data': stored.to_dict()}), 201


@app.route('/feedback/<record_id>')
@login_required
def get_feedback(record_id):
    record = get_api_client().get_record(record_id)
    return jsonify({'success': True, 'data': record.to_dict()})


@app.route('/feedback/<record_id>/pdf')
@login_required
def feedback_pdf(record_id):
    record = get_api_client().get_record(record_id)
    data = renderer.render(LayoutMode.DETAIL, record)
    return pdf_response(data, PdfRenderer.filename_for(LayoutMode.DETAIL, record))


@app.route('/feedback/<record_id>', methods=['PUT'])
@role_required('admin')
def update_feedback(record_id):
    client = get_api_client()
    edit = begin_edit(client, record_id)
    edit, result = save_edit(edit, request.get_json(silent=True) or {}, client, validator)
    if not result.valid:
        return error_response('Please fix the errors below', 400, validationErrors=result.validation_errors)

    state = session_state()
    state['search'] = replace_result(state['search'], edit.original)
    return jsonify({'success': True, 'message': 'Feedback updated successfully', 'data': edit.original.to_dict()})


@app.route('/feedback/<record_id>', methods=['DELETE'])
@role_required('admin')
def delete_feedback(record_id):
    state = session_state()
    state['search'] = remove_record(state['search'], get_api_client(), record_id)
    return jsonify({'success': True, 'message': 'Feedback deleted successfully'})


@app.route('/finder/search')
@login_required
def finder_search():
    state = session_state()
    try:
        state['search'] = run_search(state['search'], get_api_client(),
                                     request.args.get('trainNo', ''), request.args.get('date', ''))
    except ValueError as e:
        return error_response(str(e))

    payload = state['search'].to_dict()
    payload['success'] = True
    payload['totals'] = aggregator.compute_totals(state['search'].results).to_dict()
    return jsonify(payload)


def _finder_sheets():
    results = session_state()['search'].results
    if not results:
        return None
    return aggregator.group_into_sheets(results)


@app.route('/finder/export.pdf')
@login_required
def finder_export_pdf():
    sheets = _finder_sheets()
    if not sheets:
        return error_response('No feedbacks to export')
    data = renderer.render(LayoutMode.CONSOLIDATED, sheets)
    return pdf_response(data, PdfRenderer.filename_for(LayoutMode.CONSOLIDATED, sheets))


@app.route('/finder/export.xlsx')
@login_required
def finder_export_xlsx():
    sheets = _finder_sheets()
    if not sheets:
        return error_response('No feedbacks to export')
    return xlsx_response(workbook_writer.to_bytes(sheets), ReportWorkbookWriter.filename_for(sheets))


@app.route('/upload', methods=['POST'])
@role_required('admin')
def upload_workbook():
    """Stage an uploaded workbook for review."""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return error_response('Please select a file to upload')

    file_name = secure_filename(upload.filename)
    data = upload.read()
    rejected = file_validator.check_upload(file_name, data)
    if rejected:
        return error_response(rejected.error_message, 400, errorType=rejected.error_type)

    state = session_state()
    try:
        staged = stage_upload(data, file_name, extractor, validator)
    except WorkbookReadError as e:
        error_handler.handle_file_error(file_name, e, "uploading")
        state['upload'] = reset_upload()
        return error_response(str(e))

    error_handler.handle_extraction_errors(staged.extraction_errors)
    error_handler.handle_validation_failures(staged.staged)
    state['upload'] = staged

    payload = staged.to_dict()
    payload['success'] = True
    payload['sheets'] = aggregator.summarize(upload_sheets(staged, aggregator))
    return jsonify(payload)


@app.route('/upload/records/<int:index>', methods=['PATCH'])
@role_required('admin')
def revise_upload_record(index):
    state = session_state()
    try:
        state['upload'] = revise_staged_record(state['upload'], index, request.get_json(silent=True) or {}, validator)
    except IndexError as e:
        return error_response(str(e), 404)

    payload = state['upload'].to_dict()
    payload['success'] = True
    return jsonify(payload)


@app.route('/upload/reset', methods=['POST'])
@role_required('admin')
def reset_upload_session():
    session_state()['upload'] = reset_upload()
    return jsonify({'success': True})


@app.route('/upload/submit', methods=['POST'])
@role_required('admin')
def submit_upload_session():
    state = session_state()
    submitter = BulkSubmitter(get_api_client(), validator, error_handler)
    state['upload'], result = submit_upload(state['upload'], submitter)

    payload = result.to_dict()
    payload['upload'] = state['upload'].to_dict()
    return jsonify(payload), 200 if result.success else 400


@app.route('/upload/pdf')
@role_required('admin')
def upload_pdf():
    sheets = upload_sheets(session_state()['upload'], aggregator)
    data = renderer.render(LayoutMode.CONSOLIDATED, sheets)
    return pdf_response(data, PdfRenderer.filename_for(LayoutMode.CONSOLIDATED, sheets))


@app.route('/template.xlsx')
def download_template():
    return xlsx_response(workbook_writer.to_bytes([]), ReportWorkbookWriter.filename_for([]))


@app.route('/status')
def status():
    """Check system status."""
    return jsonify({
        'status': 'healthy' if config_manager.validate_api_url() else 'configuration_error',
        'api_url': config_manager.get_api_url(),
        'supported_formats': sorted(ext.lstrip('.') for ext in UploadFileValidator.SUPPORTED_EXTENSIONS),
        'max_file_size_mb': config_manager.get_max_file_size_mb(),
    })


if __name__ == '__main__':
    print("Starting Coach Feedback Manager Web UI...")
    print(f"Feedback service: {config_manager.get_api_url()}")
    print("Open your browser to: http://localhost:5000")
    app.run(debug=False, host='0.0.0.0', port=5000)

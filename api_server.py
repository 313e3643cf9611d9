#!/usr/bin/env python3
"""
Quad RGB Analyzer API Server
Holds one SessionController per browser session. The front-end uploads up to
four images, forwards pointer events, and paints the returned canvases.
"""

import logging
import uuid
import base64
from io import BytesIO
from typing import Dict

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS

from config import load_settings
from models.errors import LoadError
from models.raster_buffer import RasterBuffer
from repositories.image_repository import ImageRepository
from services.session_controller import SessionController

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

settings = load_settings()

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication
app.config['MAX_CONTENT_LENGTH'] = settings.max_upload_size_mb * 1024 * 1024

# Initialize repositories
image_repository = ImageRepository(settings.valid_image_exts, timeout=settings.image_load_timeout)

logger = logging.getLogger(__name__)

# Session storage: session_id -> controller
sessions: Dict[str, SessionController] = {}


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and f".{filename.rsplit('.', 1)[1].lower()}" in settings.valid_image_exts


def buffer_to_base64(buffer: RasterBuffer) -> str:
    """Encode a canvas as a PNG data URL for JSON responses."""
    png = image_repository.encode_png(buffer)
    return f"data:image/png;base64,{base64.b64encode(png).decode('utf-8')}"


def _invalid_session():
    return jsonify({'success': False, 'message': 'Invalid session'}), 404


def _invalid_slot(slot: int):
    return jsonify({'success': False, 'message': f'Invalid slot {slot}'}), 400


def _whole_number(value) -> int:
    """int() that refuses to truncate: 3 and 3.0 pass, 3.7 and True do not."""
    if isinstance(value, bool):
        raise ValueError(f"not a whole number: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"not a whole number: {value!r}")
    return int(value)


def _frame_payload(controller: SessionController, include_images: bool) -> dict:
    payload = {'state': controller.snapshot().as_dict()}
    if include_images:
        payload['images'] = {
            str(i): buffer_to_base64(controller.get_displayed_buffer(i))
            for i in controller.populated_slots()
        }
    return payload


@app.route('/api/sessions', methods=['POST'])
def create_session():
    """Start a new analysis session with the configured defaults."""
    session_id = str(uuid.uuid4())
    controller = SessionController.from_settings(settings)
    controller.image_repository = image_repository
    sessions[session_id] = controller
    logger.info(f"Created session {session_id}")
    return jsonify({
        'success': True,
        'session_id': session_id,
        'state': controller.snapshot().as_dict(),
    }), 201


@app.route('/api/sessions/<session_id>', methods=['GET'])
def get_state(session_id):
    """Current settings, slot occupancy and hover state."""
    controller = sessions.get(session_id)
    if controller is None:
        return _invalid_session()
    return jsonify({'success': True, 'session_id': session_id,
                    **_frame_payload(controller, request.args.get('images') == '1')})


@app.route('/api/sessions/<session_id>/slots/<int:slot>', methods=['POST'])
def upload_image(session_id, slot):
    """Decode an uploaded file and load it into a slot."""
    controller = sessions.get(session_id)
    if controller is None:
        return _invalid_session()
    if not controller.is_valid_slot(slot):
        return _invalid_slot(slot)

    if 'image' not in request.files:
        return jsonify({'success': False, 'message': 'No image provided'}), 400
    file = request.files['image']
    if file.filename == '':
        return jsonify({'success': False, 'message': 'No file selected'}), 400
    if not allowed_file(file.filename):
        return jsonify({'success': False, 'message': f'Unsupported file type: {file.filename}'}), 400

    try:
        buffer = controller.load_image_bytes(slot, file.read())
    except LoadError as e:
        logger.warning(f"Load failed for slot {slot} in session {session_id}: {e}")
        return jsonify({'success': False, 'message': f'Could not load image: {e}'}), 400
    except Exception as e:
        logger.error(f"Image loading error: {e}")
        return jsonify({'success': False, 'message': 'Error loading image'}), 500

    return jsonify({
        'success': True,
        'slot': slot,
        'width': buffer.width,
        'height': buffer.height,
        'state': controller.snapshot().as_dict(),
    })


@app.route('/api/sessions/<session_id>/slots/<int:slot>', methods=['DELETE'])
def clear_slot(session_id, slot):
    controller = sessions.get(session_id)
    if controller is None:
        return _invalid_session()
    if not controller.is_valid_slot(slot):
        return _invalid_slot(slot)
    controller.clear_slot(slot)
    return jsonify({'success': True, 'state': controller.snapshot().as_dict()})


@app.route('/api/sessions/<session_id>/slots/<int:slot>/image', methods=['GET'])
def serve_slot_image(session_id, slot):
    """Serve a slot's displayed (default) or original canvas as PNG."""
    controller = sessions.get(session_id)
    if controller is None:
        return _invalid_session()
    if not controller.is_valid_slot(slot):
        return _invalid_slot(slot)

    which = request.args.get('which', 'displayed')
    if which not in ('displayed', 'original'):
        return jsonify({'success': False, 'message': f'Unknown buffer: {which}'}), 400
    buffer = (controller.get_original_buffer(slot) if which == 'original'
              else controller.get_displayed_buffer(slot))
    if buffer is None:
        return jsonify({'error': 'Slot is empty'}), 404
    return send_file(BytesIO(image_repository.encode_png(buffer)), mimetype='image/png')


@app.route('/api/sessions/<session_id>/pointer-move', methods=['POST'])
def pointer_move(session_id):
    """
    Sample the hovered pixel and highlight matches in every slot.
    Ignored events (empty slot, off-canvas) are not errors.
    """
    controller = sessions.get(session_id)
    if controller is None:
        return _invalid_session()

    body = request.get_json(silent=True) or {}
    try:
        slot = int(body['slot'])
        x = float(body['x'])
        y = float(body['y'])
    except (KeyError, TypeError, ValueError):
        return jsonify({'success': False, 'message': 'Expected numeric slot, x and y'}), 400

    try:
        color = controller.pointer_move(slot, x, y)
    except Exception as e:
        logger.error(f"Highlight error: {e}")
        return jsonify({'success': False, 'message': 'Error highlighting images'}), 500

    return jsonify({
        'success': True,
        'ignored': color is None,
        **_frame_payload(controller, bool(body.get('include_images'))),
    })


@app.route('/api/sessions/<session_id>/pointer-leave', methods=['POST'])
def pointer_leave(session_id):
    controller = sessions.get(session_id)
    if controller is None:
        return _invalid_session()
    controller.pointer_leave()
    body = request.get_json(silent=True) or {}
    return jsonify({'success': True, **_frame_payload(controller, bool(body.get('include_images')))})


@app.route('/api/sessions/<session_id>/settings', methods=['POST'])
def update_settings(session_id):
    """Change range and/or opacity. Applies from the next pointer move."""
    controller = sessions.get(session_id)
    if controller is None:
        return _invalid_session()

    body = request.get_json(silent=True) or {}
    try:
        # Validate both before applying either.
        new_range = _whole_number(body['range']) if 'range' in body else controller.range
        new_opacity = float(body['opacity']) if 'opacity' in body else controller.opacity
        if not 0 <= new_range <= 255 or not 0.0 <= new_opacity <= 1.0:
            raise ValueError(f"range={new_range}, opacity={new_opacity}")
    except (TypeError, ValueError) as e:
        return jsonify({'success': False, 'message': f'Invalid settings: {e}'}), 400

    controller.set_range(new_range)
    controller.set_opacity(new_opacity)
    return jsonify({'success': True, 'state': controller.snapshot().as_dict()})


@app.route('/api/sessions/<session_id>', methods=['DELETE'])
def close_session(session_id):
    """Clear a session and free memory."""
    controller = sessions.pop(session_id, None)
    if controller is None:
        return jsonify({'success': False, 'message': 'Session not found'}), 404
    controller.close()
    logger.info(f"Closed session {session_id}")
    return jsonify({'success': True, 'message': 'Session cleared'})


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Quad RGB Analyzer API is running',
        'active_sessions': len(sessions)
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {settings.max_upload_size_mb}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    logger.info(f"Starting Quad RGB Analyzer API on port {settings.api_server_port}")
    logger.info(f"Canvas {settings.canvas_size}x{settings.canvas_size}, {settings.slot_count} slots")
    # One request at a time, each runs to completion.
    app.run(host='0.0.0.0', port=settings.api_server_port, threaded=False)


if __name__ == '__main__':
    main()

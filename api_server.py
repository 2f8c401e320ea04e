#!/usr/bin/env python3
"""
Calibration API Server
HTTP surface for the capture front-end: the browser grabs frames from the
camera and posts them here; the engine calibrates, renders and checks focus.
"""

import os
import logging
import base64
from typing import Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify
from flask_cors import CORS

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from calibration_engine.exceptions import InvalidRegionError
from calibration_engine.models.image import Image
from calibration_engine.models.region import PatchRegion
from calibration_engine.pipeline.calibration_session import CalibrationSession
from calibration_engine.pipeline.frame_pipeline import FramePipeline
from calibration_engine.services.image_service import ImageService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50")) * 1024 * 1024
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
image_service = ImageService()
pipeline = FramePipeline()

logger = logging.getLogger(__name__)

# One calibration session per capture client
sessions: dict[str, CalibrationSession] = {}


def get_session(session_id: Optional[str]) -> Optional[CalibrationSession]:
    """Registered session for `session_id`, or None. Unknown ids are never adopted."""
    if session_id and session_id in sessions:
        return sessions[session_id]
    return None


def _params() -> dict:
    """Form fields or JSON body, whichever the client sent."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def read_frame(params: dict) -> Image:
    """
    Frame from the request, one of:
      - file 'frame': any encoded image (PNG, JPEG, ...)
      - file 'raw' + width/height[/stride]: raw RGBA frame grab
      - JSON 'image': base64 (optionally a data: URL) encoded image
    """
    if 'frame' in request.files:
        return image_service.decode_bytes(request.files['frame'].read())
    if 'raw' in request.files:
        stride = params.get('stride')
        return image_service.from_buffer(
            request.files['raw'].read(),
            int(params['width']),
            int(params['height']),
            int(stride) if stride else None,
        )
    encoded = params.get('image')
    if encoded:
        if encoded.startswith('data:'):
            encoded = encoded.split(',', 1)[1]
        return image_service.decode_bytes(base64.b64decode(encoded))
    raise ValueError("No frame provided")


def image_to_base64(image: Image) -> str:
    """Encode an Image as a PNG data URL for JSON responses."""
    png = image_service.to_png_bytes(image)
    return f"data:image/png;base64,{base64.b64encode(png).decode('utf-8')}"


def _patch_region(params: dict, frame: Image) -> Optional[PatchRegion]:
    """None means auto-search; no coordinates means the default centre box."""
    if str(params.get('auto', '')).lower() in ('1', 'true', 'yes'):
        return None
    if all(k in params for k in ('x', 'y', 'size')):
        return PatchRegion(int(params['x']), int(params['y']), int(params['size']))
    return pipeline.default_region(frame)


@app.route('/api/session', methods=['POST'])
def create_session():
    session = CalibrationSession()
    sessions[session.session_id] = session
    return jsonify({'success': True, 'session_id': session.session_id})


@app.route('/api/calibrate', methods=['POST'])
def calibrate():
    """Sample a neutral patch (manual box or auto-search) and lock gains."""
    try:
        params = _params()
        session = get_session(params.get('session_id'))
        if session is None:
            return jsonify({'success': False, 'message': 'Invalid session'}), 400

        frame = read_frame(params)

        region = _patch_region(params, frame)

        result = pipeline.calibrate(frame, region)
        adopted = session.apply(result)

        return jsonify({
            'success': adopted,
            'session_id': session.session_id,
            **result.to_dict(),
        })

    except (ValueError, KeyError) as e:
        logger.warning(f"Bad calibration request: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        logger.exception(f"Calibration error: {e}")
        return jsonify({'success': False, 'message': 'Error during calibration'}), 500


@app.route('/api/render', methods=['POST'])
def render():
    """Correct a captured frame with the session's gains."""
    try:
        params = _params()
        session = get_session(params.get('session_id'))
        if session is None:
            return jsonify({'success': False, 'message': 'Invalid session'}), 400

        frame = read_frame(params)
        focus = pipeline.focus_or_none(frame)
        if str(params.get('crop', '')).lower() in ('1', 'true', 'yes'):
            frame = pipeline.crop(frame)

        corrected = pipeline.render(frame, session.gains)

        return jsonify({
            'success': True,
            'session_id': session.session_id,
            'calibrated': session.is_calibrated,
            'gains': list(session.gains.as_tuple()),
            'width': corrected.width,
            'height': corrected.height,
            'image': image_to_base64(corrected),
            'blurry': focus.blurry if focus else None,
            'focus_variance': focus.variance if focus else None,
            'message': focus.message if focus else '',
        })

    except (ValueError, KeyError) as e:
        # InvalidRegionError is a ValueError
        logger.warning(f"Bad render request: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        logger.exception(f"Render error: {e}")
        return jsonify({'success': False, 'message': 'Error rendering frame'}), 500


@app.route('/api/focus', methods=['POST'])
def focus():
    """Soft-focus check on a single frame."""
    try:
        frame = read_frame(_params())
        verdict = pipeline.check_focus(frame)
        return jsonify({
            'success': True,
            'blurry': verdict.blurry,
            'variance': verdict.variance,
            'threshold': verdict.threshold,
            'message': verdict.message,
        })
    except InvalidRegionError as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except (ValueError, KeyError) as e:
        logger.warning(f"Bad focus request: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400


@app.route('/api/reset', methods=['POST'])
def reset_session():
    """Forget gains, e.g. after switching cameras."""
    session = get_session(_params().get('session_id'))
    if session is not None:
        session.reset()
        return jsonify({'success': True, 'message': 'Session reset'})
    return jsonify({'success': False, 'message': 'Session not found'}), 404


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """End a session and drop it from the registry."""
    session_id = _params().get('session_id')
    if session_id and session_id in sessions:
        del sessions[session_id]
        return jsonify({'success': True, 'message': 'Session cleared'})
    return jsonify({'success': False, 'message': 'Session not found'}), 404


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Calibration API is running',
        'active_sessions': len(sessions)
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


def main():
    print("Starting Calibration API Server...")
    print(f"Max upload size: {MAX_CONTENT_LENGTH // (1024*1024)}MB")
    print("Endpoints:")
    print("   /api/session    /api/calibrate    /api/render")
    print("   /api/focus      /api/reset        /api/clear-session")
    print("   /api/health")
    print("="*60)

    app.run(
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "5000")),
        debug=False,
        threaded=True
    )


if __name__ == '__main__':
    main()

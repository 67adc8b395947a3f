#!/usr/bin/env python3
"""
AR Artwork Builder API Server (Step-by-Step)
Each wizard step has its own API endpoint; the trackability score gates
target generation.
"""

import os
import logging
import uuid
from io import BytesIO
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

# Import services and models
from models.image import Image
from models.trackability import AnalysisResult
from models.target_artifact import TargetArtifact
from models.video_meta import VideoMeta
from services.image_service import ImageService
from services.trackability_service import TrackabilityService, InvalidInputError
from services.artwork_score_service import ArtworkScoreService
from services.target_compiler_service import TargetCompilerService, TargetCompilerError
from services.video_service import VideoService
from services.experience_service import ExperienceService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "data/temp_uploads")
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100")) * 1024 * 1024

app.config['UPLOAD_FOLDER'] = UPLOAD_FOLDER
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Ensure directories exist
Path(UPLOAD_FOLDER).mkdir(parents=True, exist_ok=True)

# Initialize services
image_service = ImageService()
trackability_service = TrackabilityService()
score_service = ArtworkScoreService()
target_compiler_service = TargetCompilerService()
video_service = VideoService()
experience_service = ExperienceService()

logger = logging.getLogger(__name__)

# Session storage for wizard state
sessions = {}


class WizardSession:
    """Manages state for a single user's builder session."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.artwork_id: Optional[str] = None
        self.artwork: Optional[Image] = None
        self.analysis: Optional[AnalysisResult] = None
        self.target: Optional[TargetArtifact] = None
        self.video_meta: Optional[VideoMeta] = None
        self.video_path: Optional[Path] = None
        self.step = 0  # Track current wizard step

    def clear(self):
        """Drop artwork, target and video, removing the stored video file."""
        if self.video_path is not None and self.video_path.exists():
            self.video_path.unlink()
        self.artwork_id = None
        self.artwork = None
        self.analysis = None
        self.target = None
        self.video_meta = None
        self.video_path = None
        self.step = 0


def get_or_create_session(session_id: str = None) -> WizardSession:
    """Get existing session or create new one."""
    if not session_id:
        session_id = str(uuid.uuid4())

    if session_id not in sessions:
        sessions[session_id] = WizardSession(session_id)

    return sessions[session_id]


def _json_session():
    """Session named in the JSON body, or None."""
    body = request.get_json(silent=True) or {}
    session_id = body.get('session_id')
    if not session_id or session_id not in sessions:
        return None, body
    return sessions[session_id], body


@app.route('/api/analyze-artwork', methods=['POST'])
def analyze_artwork():
    """Upload artwork, score its trackability and persist the record."""
    try:
        if 'artwork' not in request.files:
            return jsonify({'success': False, 'message': 'No artwork provided'}), 400

        file = request.files['artwork']
        if file.filename == '':
            return jsonify({'success': False, 'message': 'No file selected'}), 400

        ok, message = image_service.check_artwork_type(file.mimetype)
        if not ok:
            return jsonify({'success': False, 'message': message}), 400

        data = file.read()
        filename = secure_filename(file.filename)
        try:
            artwork = image_service.decode(data, filename)
        except ValueError as e:
            logger.warning(f"Artwork decode failed: {e}")
            return jsonify({'success': False, 'message': 'Failed to load image.'}), 400

        ok, message = image_service.check_artwork_type(file.mimetype, artwork)
        if not ok:
            return jsonify({'success': False, 'message': message}), 400

        try:
            analysis = trackability_service.analyze(artwork)
        except InvalidInputError as e:
            return jsonify({'success': False, 'message': str(e)}), 400

        session = get_or_create_session(request.form.get('session_id'))
        if session.artwork_id:
            score_service.delete(session.artwork_id)
        session.clear()  # New artwork invalidates everything downstream
        session.artwork_id = uuid.uuid4().hex
        session.artwork = artwork
        session.analysis = analysis
        session.step = 1

        score_service.save(session.artwork_id, artwork, analysis, size_bytes=len(data))

        logger.info(f"Artwork {filename} scored {analysis.score} for session {session.session_id}")

        return jsonify({
            'success': True,
            'session_id': session.session_id,
            'artwork_id': session.artwork_id,
            'score': analysis.score,
            'label': analysis.label,
            'suggestions': list(analysis.suggestions),
            'debug': analysis.debug.to_dict(),
            'can_continue': analysis.passes_gate,
            'message': score_service.status_message(analysis),
            'meta': score_service.artwork_meta(artwork, len(data)),
        })

    except Exception as e:
        logger.error(f"Artwork analysis error: {e}")
        return jsonify({'success': False, 'message': 'Analysis failed.'}), 500


@app.route('/api/artwork-score/<artwork_id>', methods=['GET'])
def get_artwork_score(artwork_id):
    """Return a previously stored score record."""
    record = score_service.get(artwork_id)
    if record is None:
        return jsonify({'success': False, 'message': 'Score not found'}), 404
    return jsonify({'success': True, 'artwork_id': artwork_id, **record})


@app.route('/api/compiler-health', methods=['GET'])
def compiler_health():
    """Report whether the external target compiler is reachable."""
    ok = target_compiler_service.is_healthy()
    return jsonify({'ok': ok, 'api_base': target_compiler_service.base_url})


@app.route('/api/compile-target', methods=['POST'])
def compile_target():
    """Generate the tracking target for the session's artwork."""
    session, _ = _json_session()
    if session is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400
    if session.artwork is None or session.analysis is None:
        return jsonify({'success': False, 'message': 'No artwork found. Upload an image first.'}), 400
    if not session.analysis.passes_gate:
        return jsonify({
            'success': False,
            'message': 'Tracking is weak. Improve artwork before generating a target.',
            'score': session.analysis.score,
        }), 409

    try:
        session.target = target_compiler_service.compile(session.artwork, session.artwork.name)
    except TargetCompilerError as e:
        logger.error(f"Target generation failed: {e}")
        return jsonify({
            'success': False,
            'message': f'Target generation failed. Server: {target_compiler_service.base_url}. Error: {e}',
        }), 502

    session.step = max(session.step, 2)
    logger.info(f"Target {session.target.filename} ready for session {session.session_id}")

    return jsonify({
        'success': True,
        'session_id': session.session_id,
        'target': session.target.to_meta(),
        'message': f'Target generated: {session.target.filename}.',
    })


@app.route('/api/target/<session_id>', methods=['GET'])
def download_target(session_id):
    """Download the compiled target file."""
    session = sessions.get(session_id)
    if session is None or session.target is None:
        return jsonify({'error': 'Target not found'}), 404
    return send_file(
        BytesIO(session.target.data),
        mimetype='application/octet-stream',
        as_attachment=True,
        download_name=session.target.filename,
    )


@app.route('/api/attach-video', methods=['POST'])
def attach_video():
    """Attach the overlay video and report advisory warnings."""
    try:
        session_id = request.form.get('session_id')
        if not session_id or session_id not in sessions:
            return jsonify({'success': False, 'message': 'Invalid session'}), 400
        session = sessions[session_id]

        if 'video' not in request.files:
            return jsonify({'success': False, 'message': 'No video provided'}), 400
        file = request.files['video']

        ok, message = video_service.validate_type(file.mimetype)
        if not ok:
            return jsonify({'success': False, 'message': message}), 400

        filename = secure_filename(file.filename) or 'video'
        video_path = Path(UPLOAD_FOLDER) / f"video_{session.session_id}_{filename}"
        file.save(str(video_path))

        if session.video_path is not None and session.video_path != video_path and session.video_path.exists():
            session.video_path.unlink()
        session.video_path = video_path
        session.video_meta = video_service.build_meta(video_path, filename, file.mimetype)
        session.step = max(session.step, 3)

        return jsonify({
            'success': True,
            'session_id': session.session_id,
            'meta': session.video_meta.to_dict(),
            'warnings': video_service.build_warnings(session.video_meta),
            'message': 'Video saved.',
        })

    except Exception as e:
        logger.error(f"Video attach error: {e}")
        return jsonify({'success': False, 'message': 'Error saving video'}), 500


@app.route('/api/experience-link', methods=['POST'])
def experience_link():
    """Build the shareable experience URL once artwork and video are in place."""
    session, body = _json_session()
    if session is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    if not experience_service.is_ready(session.artwork is not None, session.video_meta is not None):
        return jsonify({'success': False, 'message': 'Missing artwork or video. Complete previous steps.'}), 400

    url = experience_service.build_url(body.get('page_url'))
    if url is None:
        return jsonify({'success': False, 'message': 'Open this page over http(s) to get a shareable link.'}), 400

    session.step = max(session.step, 4)
    return jsonify({'success': True, 'session_id': session.session_id, 'url': url})


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'ok': True,
        'status': 'healthy',
        'message': 'AR Artwork Builder API is running',
        'active_sessions': len(sessions)
    })


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Clear a session, its stored score and its video."""
    try:
        session, _ = _json_session()
        if session is None:
            return jsonify({'success': False, 'message': 'Session not found'})
        if session.artwork_id:
            score_service.delete(session.artwork_id)
        session.clear()
        del sessions[session.session_id]
        return jsonify({'success': True, 'message': 'Session cleared'})
    except Exception as e:
        logger.error(f"Error clearing session: {e}")
        return jsonify({'success': False, 'message': 'Error clearing session'}), 500


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


if __name__ == '__main__':
    logger.info("Starting AR Artwork Builder API Server (Step-by-Step)...")
    logger.info(f"Upload directory: {UPLOAD_FOLDER}")
    logger.info(f"Max upload size: {MAX_CONTENT_LENGTH // (1024*1024)}MB")
    logger.info(f"Target compiler: {target_compiler_service.base_url}")
    app.run(host=os.getenv("API_HOST", "127.0.0.1"), port=int(os.getenv("API_PORT", "5000")))

from flask import Blueprint, current_app, send_from_directory

uploads_bp = Blueprint('uploads', __name__)


@uploads_bp.route('/uploads/<path:filename>', methods=['GET'])
def serve_upload(filename):
    """Stored files (photos, attachments, generated PDFs) served from UPLOAD_FOLDER"""
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)

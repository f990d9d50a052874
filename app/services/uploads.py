"""
Multipart file storage under UPLOAD_FOLDER, served back from /uploads/<path>
"""
import logging
import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from app.errors import UploadError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp'}
DOCUMENT_EXTENSIONS = IMAGE_EXTENSIONS | {'pdf', 'doc', 'docx', 'xls', 'xlsx', 'txt', 'svg'}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


def _allowed_file(filename, allowed):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed


def upload_root():
    return current_app.config['UPLOAD_FOLDER']


def upload_path(*parts):
    return os.path.join(upload_root(), *parts)


def url_to_path(url):
    """Local filesystem path for a /uploads/... url, or None for foreign urls"""
    if not url or not url.startswith('/uploads/'):
        return None
    relative = url[len('/uploads/'):]
    return os.path.join(upload_root(), *relative.split('/'))


def _file_size(storage):
    storage.stream.seek(0, os.SEEK_END)
    size = storage.stream.tell()
    storage.stream.seek(0)
    return size


def save_uploads(files, subdir, max_files=10, max_size=MAX_FILE_SIZE, allowed=IMAGE_EXTENSIONS):
    """
    Validate and store uploaded files

    Args:
        files: list of werkzeug FileStorage
        subdir (str): folder under UPLOAD_FOLDER

    Returns:
        list: [{url, name, type}] in upload order

    Raises:
        UploadError: too many files, bad extension or oversize file; nothing is written
    """
    files = [f for f in files or [] if f and f.filename]
    if len(files) > max_files:
        raise UploadError('Maximum {} files allowed per upload'.format(max_files))

    for storage in files:
        if not _allowed_file(storage.filename, allowed):
            raise UploadError('File type not allowed: {}'.format(storage.filename),
                              errors=[{'field': 'files', 'message': 'Accepted: ' + ', '.join(sorted(allowed))}])
        if _file_size(storage) > max_size:
            raise UploadError('File exceeds maximum size of {} MB: {}'.format(
                max_size // (1024 * 1024), storage.filename))

    target_dir = upload_path(subdir)
    os.makedirs(target_dir, exist_ok=True)

    saved = []
    for storage in files:
        ext = storage.filename.rsplit('.', 1)[1].lower()
        safe_name = secure_filename('{}.{}'.format(uuid.uuid4().hex, ext))
        storage.save(os.path.join(target_dir, safe_name))
        saved.append({
            'url': '/uploads/{}/{}'.format(subdir, safe_name),
            'name': storage.filename,
            'type': storage.mimetype,
        })
    logger.debug('Stored %d file(s) under %s', len(saved), subdir)
    return saved


def delete_upload(url):
    """Remove a stored file; missing files are ignored"""
    path = url_to_path(url)
    if path and os.path.isfile(path):
        os.remove(path)
        return True
    return False

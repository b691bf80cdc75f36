#!/usr/bin/env python3

import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from functools import lru_cache, wraps
from time import sleep

from bottle import BaseRequest, Bottle, HTTPResponse, Response, request, response, static_file

import settings
from asset_db import AssetDb
from assets import (
    AssetEditor,
    AssetError,
    AssetNotFoundError,
    AssetProcessor,
    CatalogError,
    CropBox,
    CropPipeline,
    FileTooLargeError,
    IngestPipeline,
    InvalidFileTypeError,
    ValidationError,
    __version__,
)
from assets.naming import DEFAULT_FOLDER, TEMP_DIR, THUMBNAIL_DIR, is_valid_folder, staging_filename
from assets.storage import delete_if_exists, ensure_dir

app = application = Bottle()

# Configure logging
level = logging.getLevelName(settings.LOG_LEVEL)
logging.basicConfig(filename=settings.LOG_FILE, level=level,
                    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
logger = logging.getLogger('server')

# request bodies above this are spooled to disk
BaseRequest.MEMFILE_MAX = 1024 * 1024

IMMUTABLE_CACHE = 'public, max-age=31536000, immutable'
REVALIDATE_CACHE = 'no-cache'
MULTIPART_OVERHEAD = 1024 * 1024


@lru_cache(maxsize=None)
def get_asset_db():
    return AssetDb()


@lru_cache(maxsize=None)
def get_processor():
    return AssetProcessor(
        thumbnail_size=(settings.THUMBNAIL_SIZE, settings.THUMBNAIL_SIZE),
        quality=settings.THUMBNAIL_QUALITY,
    )


def get_ingest_pipeline():
    return IngestPipeline(get_asset_db(), get_processor(), settings.STORAGE_PATH)


def get_crop_pipeline():
    return CropPipeline(get_asset_db(), get_processor(), settings.STORAGE_PATH)


def get_editor():
    return AssetEditor(get_asset_db(), get_processor(), settings.STORAGE_PATH)


def str2bool(value, raise_exc=False):
    """converts diverse string values into boolean True or False."""
    true_set = {'yes', 'true', 't', 'y', '1'}
    false_set = {'no', 'false', 'f', 'n', '0'}

    if isinstance(value, str):
        value = value.lower()
        if value in true_set:
            return True
        if value in false_set:
            return False

    if raise_exc:
        raise ValueError('Expected "%s"' % '", "'.join(true_set | false_set))
    return None


def get_timestamp():
    """Return an integer timestamp with one second resolution for
    the current moment.
    """
    return int(time.time())


def now_iso():
    return datetime.now(timezone.utc).isoformat()


def envelope(data, **metadata):
    """Success body: {success, data, metadata: {timestamp, ...}}"""
    return {
        'success': True,
        'data': data,
        'metadata': {'timestamp': now_iso(), **metadata},
    }


def error_response(status, error):
    return HTTPResponse(status=status, body={
        'success': False,
        'error': error,
        'metadata': {'timestamp': now_iso()},
    })


def include_timestamp(func):
    """Include the X-Timestamp header to help clients maintain time synchronization."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        result = func(*args, **kwargs)
        (result if isinstance(result, Response) else response) \
            .set_header('X-Timestamp', str(get_timestamp()))
        return result
    return wrapper


def allow_cross_origin(func):
    """Allow cross domain access."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
        except HTTPResponse as r:
            r.set_header('Access-Control-Allow-Origin', settings.CORS_ORIGIN)
            raise
        (result if isinstance(result, Response) else response) \
            .set_header('Access-Control-Allow-Origin', settings.CORS_ORIGIN)
        return result
    return wrapper


def api_errors(func):
    """Translate pipeline errors into the JSON error envelope."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except HTTPResponse:
            raise
        except AssetError as e:
            if e.status >= 500:
                logger.error(f"{request.method} {request.path} failed: {e.code} {e.message}")
            else:
                logger.info(f"{request.method} {request.path} rejected: {e.code} {e.message}")
            return error_response(e.status, e.to_dict())
        except Exception:
            logger.exception(f"Unhandled error in {request.method} {request.path}")
            return error_response(500, {'message': 'Internal server error', 'code': 'INTERNAL_ERROR'})
    return wrapper


# last installed runs innermost
app.install(allow_cross_origin)
app.install(include_timestamp)
app.install(api_errors)


@app.error(404)
def not_found(error):
    response.content_type = 'application/json'
    response.set_header('Access-Control-Allow-Origin', settings.CORS_ORIGIN)
    return json.dumps({
        'success': False,
        'error': {'message': f"Route not found: {request.method} {request.path}", 'code': 'NOT_FOUND'},
        'metadata': {'timestamp': now_iso()},
    })


@app.error(405)
def method_not_allowed(error):
    # the preflight route matches every path, so OPTIONS alone means no such route
    allowed = {m.strip() for m in error.headers.get('Allow', '').split(',') if m.strip()}
    if allowed <= {'OPTIONS'}:
        response.status = 404
        return not_found(error)

    response.content_type = 'application/json'
    response.set_header('Access-Control-Allow-Origin', settings.CORS_ORIGIN)
    return json.dumps({
        'success': False,
        'error': {'message': f"Method not allowed: {request.method} {request.path}", 'code': 'METHOD_NOT_ALLOWED'},
        'metadata': {'timestamp': now_iso()},
    })


def validate_id(asset_id):
    try:
        return str(uuid.UUID(asset_id))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(f"Invalid image id: {asset_id!r}")


def parse_int(name, default, minimum=1):
    raw = request.query.get(name)
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return value


def read_json_body():
    raw = request.body.read()
    if not raw:
        raise ValidationError("Request body must be a JSON object")
    try:
        body = json.loads(raw)
    except ValueError:
        raise ValidationError("Request body is not valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def upload_url(folder, filename):
    return f"/uploads/{folder}/{filename}"


def record_view(record):
    """Record as returned to clients, with URLs for the original and thumbnail."""
    data = record.to_dict()
    data['url'] = upload_url(record.folder, record.stored_filename)
    if record.thumbnail_path:
        data['thumbnail_url'] = upload_url(record.folder, f"{THUMBNAIL_DIR}/{os.path.basename(record.thumbnail_path)}")
    return data


def client_filename(upload):
    name = (upload.raw_filename or '').replace('\\', '/').rsplit('/', 1)[-1].strip()
    return name or upload.filename


@app.route('/<path:path>', method='OPTIONS')
def cors_preflight(path):
    response.set_header('Access-Control-Allow-Methods', 'GET, POST, PATCH, DELETE, OPTIONS')
    response.set_header('Access-Control-Allow-Headers', 'Content-Type')
    response.content_type = "text/plain; charset=utf-8"
    return ''


@app.route('/')
def main_page():
    return envelope({
        'name': 'Image asset server',
        'version': __version__,
        'endpoints': {
            'images': '/images',
            'uploads': '/uploads/<folder>/<filename>',
            'health': '/health',
        },
    })


@app.route('/health')
def health():
    try:
        get_asset_db().ping()
    except CatalogError as e:
        logger.error(f"Health check failed: {e}")
        return error_response(503, {'message': 'Database unavailable', 'code': 'DATABASE_ERROR'})
    return envelope({'status': 'ok', 'database': 'connected'})


@app.route('/images', method='POST')
def upload_image():
    """Accept a multipart upload and run it through the ingest pipeline."""
    start_save = time.time()
    max_bytes = settings.MAX_UPLOAD_MB * 1024 * 1024
    if request.content_length > max_bytes + MULTIPART_OVERHEAD:
        raise FileTooLargeError(f"File exceeds the {settings.MAX_UPLOAD_MB} MB limit")

    upload = request.files.get('file')
    if upload is None:
        raise ValidationError("No file uploaded", code='NO_FILE')

    mime_type = (upload.content_type or '').lower()
    if mime_type not in settings.ALLOWED_MIME_TYPES:
        raise InvalidFileTypeError(
            f"Unsupported file type {mime_type or 'unknown'}; allowed: {', '.join(settings.ALLOWED_MIME_TYPES)}")
    if mime_type == 'image/jpg':
        mime_type = 'image/jpeg'

    folder = request.forms.get('folder') or DEFAULT_FOLDER
    if not is_valid_folder(folder):
        raise ValidationError(f"Invalid folder name: {folder!r}")

    original_name = client_filename(upload)
    staged = os.path.join(settings.TEMP_UPLOAD_DIR, staging_filename(original_name))
    ensure_dir(settings.TEMP_UPLOAD_DIR)
    try:
        upload.save(staged)
    except OSError:
        delete_if_exists(staged)
        raise

    if os.path.getsize(staged) > max_bytes:
        delete_if_exists(staged)
        raise FileTooLargeError(f"File exceeds the {settings.MAX_UPLOAD_MB} MB limit")

    record = get_ingest_pipeline().ingest(staged, original_name, mime_type, folder)
    logger.info(f"Upload of {original_name} stored as {record.id} in {time.time() - start_save:.2f}s")
    response.status = 201
    return envelope(record_view(record))


@app.route('/images', method='GET')
def list_images():
    page = parse_int('page', 1)
    limit = min(parse_int('limit', settings.DEFAULT_PAGE_LIMIT), settings.MAX_PAGE_LIMIT)
    folder = request.query.get('folder') or None
    if folder is not None and not is_valid_folder(folder):
        raise ValidationError(f"Invalid folder name: {folder!r}")
    include_deleted = str2bool(request.query.get('include_deleted', 'false'))
    if include_deleted is None:
        raise ValidationError("include_deleted must be true or false")

    records, total = get_asset_db().list_assets(
        page=page,
        limit=limit,
        folder=folder,
        mime_type=request.query.get('mimetype') or None,
        include_deleted=include_deleted,
    )
    return envelope([record_view(r) for r in records], total=total, page=page, limit=limit)


@app.route('/images/<asset_id>', method='GET')
def get_image(asset_id):
    """Stream the image bytes; TIFF is served through its WebP preview."""
    editor = get_editor()
    record = editor.get(validate_id(asset_id))
    if not os.path.isfile(record.absolute_path):
        logger.error(f"Stored file missing for {record.id}: {record.absolute_path}")
        raise AssetNotFoundError(record.id)

    file_path = editor.preview_for(record)
    if file_path == record.absolute_path:
        mimetype, etag = record.mime_type, record.content_hash
    else:
        mimetype, etag = 'image/webp', f"{record.content_hash}-webp"
    # EXIF edits rewrite the bytes in place
    resp = static_file(os.path.basename(file_path), root=os.path.dirname(file_path), mimetype=mimetype, etag=etag)
    resp.set_header('Cache-Control', REVALIDATE_CACHE)
    return resp


@app.route('/images/<asset_id>/crop', method='POST')
def crop_image(asset_id):
    asset_id = validate_id(asset_id)
    body = read_json_body()
    box = CropBox.from_numbers(body.get('x'), body.get('y'), body.get('width'), body.get('height'))
    record = get_crop_pipeline().crop(asset_id, box)
    response.status = 201
    return envelope(record_view(record))


@app.route('/images/<asset_id>', method='PATCH')
def update_image(asset_id):
    asset_id = validate_id(asset_id)
    body = read_json_body()
    folder = body.get('folder')
    if folder is not None and not isinstance(folder, str):
        raise ValidationError("folder must be a string")
    record = get_editor().update(asset_id, metadata=body.get('metadata'), folder=folder)
    return envelope(record_view(record))


@app.route('/images/<asset_id>/exif', method='PATCH')
def update_exif(asset_id):
    asset_id = validate_id(asset_id)
    record = get_editor().update_exif(asset_id, read_json_body())
    return envelope(record_view(record))


@app.route('/images/<asset_id>', method='DELETE')
def delete_image(asset_id):
    record = get_editor().delete(validate_id(asset_id))
    return envelope(record_view(record))


@app.route('/images', method='DELETE')
def delete_images():
    ids = read_json_body().get('ids')
    if not isinstance(ids, list) or not ids:
        raise ValidationError("ids must be a non-empty list of image ids")
    count = get_editor().delete_many([validate_id(i) for i in ids])
    return envelope({'count': count})


@app.route('/uploads/<filepath:path>')
def serve_upload(filepath):
    """Serve stored originals and thumbnails. The staging area is never exposed."""
    parts = filepath.split('/')
    if parts[0] == TEMP_DIR or '..' in parts:
        raise AssetNotFoundError(filepath)
    if not os.path.isfile(os.path.join(settings.STORAGE_PATH, filepath)):
        raise AssetNotFoundError(filepath)

    resp = static_file(filepath, root=settings.STORAGE_PATH)
    if THUMBNAIL_DIR in parts[:-1]:
        resp.set_header('Cache-Control', IMMUTABLE_CACHE)
    else:
        resp.set_header('Cache-Control', REVALIDATE_CACHE)
    return resp


if __name__ == '__main__':
    from bottle import run
    asset_db = get_asset_db()
    logger.info("Starting up....")
    while asset_db.connect() is not True:
        sleep(5)
        logger.info("Retrying db connection....")
    asset_db.create_tables()
    ensure_dir(settings.STORAGE_PATH)
    ensure_dir(settings.TEMP_UPLOAD_DIR)
    logger.info("running server...")

    run(app=application,
        host=settings.HOST,
        port=settings.PORT,
        server=settings.SERVER,
        debug=settings.DEBUG_APP,
        reloader=settings.DEBUG_APP
    )

    logger.info("Exiting.")

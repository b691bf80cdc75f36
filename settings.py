# Server settings. Every value can be overridden from the environment.

import os


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('yes', 'true', 't', 'y', '1')


# Storage
STORAGE_PATH = os.getenv('STORAGE_PATH', os.path.abspath('./uploads'))
# Uploads are staged here before ingest; keep it on the same filesystem as STORAGE_PATH
TEMP_UPLOAD_DIR = os.getenv('TEMP_UPLOAD_DIR', os.path.join(STORAGE_PATH, 'temp'))

# Catalog
SQL_HOST = os.getenv('SQL_HOST', 'localhost')
SQL_PORT = int(os.getenv('SQL_PORT', '3306'))
SQL_USER = os.getenv('SQL_USER', 'assets')
SQL_PASSWORD = os.getenv('SQL_PASSWORD', '')
SQL_DATABASE = os.getenv('SQL_DATABASE', 'assets')
DB_POOL_SIZE = int(os.getenv('DB_POOL_SIZE', '8'))

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FILE = os.getenv('LOG_FILE')

# HTTP server
HOST = os.getenv('HOST', '0.0.0.0')
PORT = int(os.getenv('PORT', '8080'))
SERVER = os.getenv('SERVER', 'wsgiref')
DEBUG_APP = _env_bool('DEBUG_APP', False)
CORS_ORIGIN = os.getenv('CORS_ORIGIN', '*')

# Processing
THUMBNAIL_SIZE = int(os.getenv('THUMBNAIL_SIZE', '300'))
THUMBNAIL_QUALITY = int(os.getenv('THUMBNAIL_QUALITY', '80'))
MAX_UPLOAD_MB = int(os.getenv('MAX_UPLOAD_MB', '50'))

ALLOWED_MIME_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/tiff')

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

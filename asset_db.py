import json
import logging
from datetime import timezone

import mysql.connector
from mysql.connector import errorcode, pooling
from retrying import retry

import settings
from assets.asset_record import AssetRecord, utcnow
from assets.errors import CatalogError, DuplicateAssetError
from assets.metadata import AssetMetadata

LIVE_HASH_INDEX = 'uq_assets_live_hash'

ASSET_COLUMNS = (
    "id, stored_filename, absolute_path, thumbnail_path, folder, size_bytes, mime_type, "
    "content_hash, original_name, metadata, created_at, updated_at, deleted_at"
)

TABLES = {
    'assets': (
        "CREATE TABLE IF NOT EXISTS `assets` ("
        "  id CHAR(36) NOT NULL PRIMARY KEY,"
        "  stored_filename VARCHAR(255) NOT NULL,"
        "  absolute_path VARCHAR(2000) NOT NULL,"
        "  thumbnail_path VARCHAR(2000),"
        "  folder VARCHAR(255) NOT NULL DEFAULT 'default',"
        "  size_bytes BIGINT NOT NULL,"
        "  mime_type VARCHAR(100) NOT NULL,"
        "  content_hash CHAR(32) NOT NULL,"
        "  original_name VARCHAR(1000) NOT NULL,"
        "  metadata JSON,"
        "  created_at DATETIME(3) NOT NULL,"
        "  updated_at DATETIME(3) NOT NULL,"
        "  deleted_at DATETIME(3) NULL,"
        # only live rows carry a hash here, so the unique index ignores deleted rows
        "  live_hash CHAR(32) AS (IF(deleted_at IS NULL, content_hash, NULL)) STORED,"
        f"  UNIQUE KEY {LIVE_HASH_INDEX} (live_hash),"
        "  UNIQUE KEY uq_assets_folder_filename (folder, stored_filename),"
        "  KEY ix_assets_content_hash (content_hash),"
        "  KEY ix_assets_created_at (created_at)"
        ") ENGINE=InnoDB"
    )
}


def _to_db_time(value):
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value):
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _load_metadata(value):
    if value is None:
        return AssetMetadata()
    if isinstance(value, (bytes, bytearray)):
        value = value.decode('utf-8')
    if isinstance(value, str):
        value = json.loads(value)
    return AssetMetadata.from_dict(value)


def row_to_record(row) -> AssetRecord:
    (asset_id, stored_filename, absolute_path, thumbnail_path, folder, size_bytes, mime_type,
     content_hash, original_name, metadata, created_at, updated_at, deleted_at) = row
    return AssetRecord(
        id=asset_id,
        stored_filename=stored_filename,
        absolute_path=absolute_path,
        thumbnail_path=thumbnail_path,
        folder=folder,
        size_bytes=int(size_bytes),
        mime_type=mime_type,
        content_hash=content_hash,
        original_name=original_name,
        metadata=_load_metadata(metadata),
        created_at=_from_db_time(created_at),
        updated_at=_from_db_time(updated_at),
        deleted_at=_from_db_time(deleted_at),
    )


class AssetDb:
    """
    MySQL-backed asset catalog.

    Connections come from a lazily created pool. Every statement is
    parameterized.
    """

    def __init__(self, pool_size=None, logger=None):
        self.pool_size = pool_size or settings.DB_POOL_SIZE
        self.connection_pool = None
        self.logger = logger or logging.getLogger(__name__)

    def initialize_pool(self):
        """
        Initialize the connection pool lazily if it hasn't been created yet.
        """
        if not self.connection_pool:
            self.logger.debug("Initializing connection pool...")
            try:
                self.connection_pool = pooling.MySQLConnectionPool(
                    pool_name="asset_db_pool",
                    pool_size=self.pool_size,
                    user=settings.SQL_USER,
                    password=settings.SQL_PASSWORD,
                    host=settings.SQL_HOST,
                    port=settings.SQL_PORT,
                    database=settings.SQL_DATABASE,
                )
                self.logger.debug("Connection pool initialized.")
            except mysql.connector.Error as err:
                self.logger.error(f"Failed to initialize connection pool: {err}")
                raise

    @retry(retry_on_exception=lambda e: isinstance(e, mysql.connector.Error), stop_max_attempt_number=3,
           wait_exponential_multiplier=1000)
    def get_cursor(self):
        """
        Get a connection from the pool and create a cursor.
        """
        try:
            self.initialize_pool()
            connection = self.connection_pool.get_connection()
            return connection.cursor(buffered=True), connection
        except mysql.connector.Error as e:
            self.logger.warning(f"Error getting cursor: {e}")
            raise

    def close_connection(self, connection):
        """
        Return a connection to the pool.
        """
        if connection:
            try:
                connection.close()
            except mysql.connector.Error as e:
                self.logger.warning(f"Error closing connection: {e}")

    def connect(self):
        """Returns True once the database answers."""
        try:
            return self.ping()
        except CatalogError as e:
            self.logger.warning(f"Database not reachable yet: {e}")
            return False

    def ping(self):
        rows = self.fetch("SELECT 1")
        return bool(rows) and rows[0][0] == 1

    def create_tables(self):
        """
        Create the required database tables if they do not exist.
        """
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            for table_name, table_description in TABLES.items():
                try:
                    self.logger.info(f"Creating table {table_name}...")
                    cursor.execute(table_description)
                except mysql.connector.Error as err:
                    if err.errno == errorcode.ER_TABLE_EXISTS_ERROR:
                        self.logger.info(f"Table {table_name} already exists.")
                    else:
                        self.logger.error(f"Error creating table {table_name}: {err}")
                        raise CatalogError(f"Failed to create table {table_name}")
        except mysql.connector.Error as e:
            self.logger.error(f"Error creating tables: {e}")
            raise CatalogError("Database error")
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def fetch(self, query, params=()):
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            self.logger.debug(f"SQL: {query} {params}")
            cursor.execute(query, params)
            return cursor.fetchall()
        except mysql.connector.Error as e:
            self.logger.error(f"Error fetching records: {e}")
            raise CatalogError("Database error")
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def execute(self, sql, params=(), content_hash=None):
        """
        Run a write statement and commit it.

        Args:
            sql: Statement with %s placeholders
            params: Statement parameters
            content_hash: Hash being written; a live-hash conflict on it is
                reported as DuplicateAssetError

        Returns:
            Number of affected rows
        """
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            self.logger.debug(f"SQL: {sql} {params}")
            cursor.execute(sql, params)
            connection.commit()
            return cursor.rowcount
        except mysql.connector.IntegrityError as e:
            if connection:
                connection.rollback()
            if e.errno == errorcode.ER_DUP_ENTRY and LIVE_HASH_INDEX in str(e) and content_hash:
                winner = self.find_live_by_hash(content_hash)
                raise DuplicateAssetError(winner.id if winner else None)
            self.logger.error(f"Integrity error: {e}")
            raise CatalogError("Database constraint violated")
        except mysql.connector.Error as e:
            self.logger.error(f"Error executing statement: {e}")
            raise CatalogError("Database error")
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def create_asset(self, record):
        self.execute(
            f"INSERT INTO assets ({ASSET_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
            (
                record.id,
                record.stored_filename,
                record.absolute_path,
                record.thumbnail_path,
                record.folder,
                record.size_bytes,
                record.mime_type,
                record.content_hash,
                record.original_name,
                json.dumps(record.metadata.to_dict()),
                _to_db_time(record.created_at),
                _to_db_time(record.updated_at),
                _to_db_time(record.deleted_at),
            ),
            content_hash=record.content_hash,
        )
        self.logger.debug(f"Inserted asset {record.id}")
        return record

    def get_asset(self, asset_id, include_deleted=False):
        query = f"SELECT {ASSET_COLUMNS} FROM assets WHERE id = %s"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        rows = self.fetch(query, (asset_id,))
        return row_to_record(rows[0]) if rows else None

    def find_live_by_hash(self, content_hash):
        rows = self.fetch(
            f"SELECT {ASSET_COLUMNS} FROM assets WHERE content_hash = %s AND deleted_at IS NULL LIMIT 1",
            (content_hash,),
        )
        return row_to_record(rows[0]) if rows else None

    def list_assets(self, page=1, limit=20, folder=None, mime_type=None, include_deleted=False):
        """
        Returns (records, total) for one page, newest first.
        """
        clauses, params = [], []
        if not include_deleted:
            clauses.append("deleted_at IS NULL")
        if folder:
            clauses.append("folder = %s")
            params.append(folder)
        if mime_type:
            clauses.append("mime_type = %s")
            params.append(mime_type)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        total = self.fetch(f"SELECT COUNT(*) FROM assets{where}", tuple(params))[0][0]
        rows = self.fetch(
            f"SELECT {ASSET_COLUMNS} FROM assets{where} ORDER BY created_at DESC, id LIMIT %s OFFSET %s",
            tuple(params) + (limit, (page - 1) * limit),
        )
        return [row_to_record(row) for row in rows], int(total)

    def update_asset(self, record):
        self.execute(
            "UPDATE assets SET stored_filename = %s, absolute_path = %s, thumbnail_path = %s, folder = %s, "
            "size_bytes = %s, content_hash = %s, metadata = %s, updated_at = %s WHERE id = %s",
            (
                record.stored_filename,
                record.absolute_path,
                record.thumbnail_path,
                record.folder,
                record.size_bytes,
                record.content_hash,
                json.dumps(record.metadata.to_dict()),
                _to_db_time(record.updated_at),
                record.id,
            ),
            content_hash=record.content_hash,
        )
        return record

    def soft_delete(self, asset_id):
        now = _to_db_time(utcnow())
        self.execute(
            "UPDATE assets SET deleted_at = %s, updated_at = %s WHERE id = %s AND deleted_at IS NULL",
            (now, now, asset_id),
        )
        return self.get_asset(asset_id, include_deleted=True)

    def soft_delete_many(self, asset_ids):
        """Returns the number of live assets that were deleted."""
        if not asset_ids:
            return 0
        now = _to_db_time(utcnow())
        placeholders = ", ".join(["%s"] * len(asset_ids))
        return self.execute(
            f"UPDATE assets SET deleted_at = %s, updated_at = %s "
            f"WHERE id IN ({placeholders}) AND deleted_at IS NULL",
            (now, now) + tuple(asset_ids),
        )

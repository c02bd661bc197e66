import time
import logging

import mysql.connector
import mysql.connector.pooling
import psycopg2
import psycopg2.pool

logger = logging.getLogger(__name__)

SUPPORTED_DB_TYPES = ("mysql", "postgresql")


class DBPool(object):
    """
    Connection pool for the channel status database (MySQL or PostgreSQL).

    Failed queries recreate the pool and retry up to max_reconnect_attempts
    times; after that execute() returns None.
    """
    def __init__(self, db_type="postgresql", host="127.0.0.1", port=None, user="root",
                 password="root", database="chstatus", pool_name="chstatus_pool",
                 pool_size=2, max_reconnect_attempts=3, reconnect_delay=5):
        self._db_type = str(db_type).lower()
        self._max_reconnect_attempts = int(max_reconnect_attempts)
        self._reconnect_delay = float(reconnect_delay)
        self._reconnect_attempts = 0
        self._pool_name = pool_name
        self._pool_size = int(pool_size)
        self.pool = None

        if self._db_type not in SUPPORTED_DB_TYPES:
            raise ValueError(f"Unsupported database type '{db_type}'. Choose 'mysql' or 'postgresql'.")

        default_port = "3306" if self._db_type == "mysql" else "5432"
        self.dbconfig = {
            "host": host,
            "port": int(port if port else default_port),
            "user": user,
            "password": password,
        }
        # psycopg2 names the database 'dbname'
        if self._db_type == "mysql":
            self.dbconfig["database"] = database
        else:
            self.dbconfig["dbname"] = database

        self.pool = self._create_pool()

    @property
    def db_type(self):
        return self._db_type

    def _create_pool(self):
        try:
            if self._db_type == "mysql":
                pool = mysql.connector.pooling.MySQLConnectionPool(
                    pool_name=self._pool_name,
                    pool_size=self._pool_size,
                    pool_reset_session=True,
                    **self.dbconfig)
            else:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=self._pool_size,
                    **self.dbconfig)
            logger.debug(f"{self._db_type} pool '{self._pool_name}' created.")
            return pool
        except Exception as e:
            logger.error(f"Error creating {self._db_type} pool: {e}", exc_info=True)
            return None

    def _get_connection(self):
        if self.pool is None:
            raise ConnectionError(f"Database pool for {self._db_type} is not initialized.")
        if self._db_type == "mysql":
            return self.pool.get_connection()  # type: ignore
        return self.pool.getconn()  # type: ignore

    def close(self, conn, cursor):
        """Closes the cursor and returns the connection to the pool."""
        if cursor:
            cursor.close()
        if conn:
            if self.pool is not None and self._db_type == "postgresql":
                self.pool.putconn(conn)  # type: ignore
            else:
                # mysql.connector pooled connections return to the pool on close()
                conn.close()

    def execute(self, sql, args=None, commit=False):
        """Executes a query. Returns fetched rows, or None on commit or failure."""
        conn = None
        cursor = None
        try:
            conn = self._get_connection()
            cursor = conn.cursor()
            if args:
                cursor.execute(sql, args if isinstance(args, (tuple, list)) else (args,))
            else:
                cursor.execute(sql)

            if commit:
                conn.commit()
                result = None
            else:
                result = cursor.fetchall()
            self._reconnect_attempts = 0
            return result
        except (mysql.connector.Error, psycopg2.Error, ConnectionError) as e:
            logger.error(f"!! DBPool Error ({self._db_type}): {e}")
            self.close(conn, cursor)
            conn = cursor = None
            return self.handle_error(self.execute, sql, args=args, commit=commit)
        finally:
            self.close(conn, cursor)

    def is_db_connected(self):
        """Checks if the database pool is functional."""
        conn = None
        cursor = None
        try:
            conn = self._get_connection()
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.fetchall()
            logger.info(f"DB Pool Connection Check: OK, client: {self._db_type}")
            return True
        except (mysql.connector.Error, psycopg2.Error, ConnectionError) as e:
            logger.error(f"!! DBPool Connection Check Error ({self._db_type}): {e}")
            return False
        finally:
            self.close(conn, cursor)

    def handle_error(self, method, *args, **kwargs):
        """Recreates the pool and retries `method` until attempts run out."""
        if self._reconnect_attempts >= self._max_reconnect_attempts:
            logger.critical("!! DBPool Error: Exceeded max reconnect attempts.")
            self._reconnect_attempts = 0
            return None

        self._reconnect_attempts += 1
        logger.warning(f"!! DBPool Attempting to recreate pool... ({self._reconnect_attempts})")
        time.sleep(self._reconnect_delay)
        self.pool = self._create_pool()
        return method(*args, **kwargs)

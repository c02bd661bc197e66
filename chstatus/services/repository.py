# chstatus/services/repository.py
import logging
from typing import List, Optional, Tuple

from .db_pool import DBPool

logger = logging.getLogger(__name__)


class StatusRepository:
    """
    Handles all database interactions for channel status retrieval.
    This is the *only* place SQL queries should exist.

    Each interval of validity (IoV) is a row of the IoV table; the status
    of every channel for that IoV lives in the status table.
    """
    def __init__(self, pool: DBPool, db_type: str):
        self.pool = pool
        self.db_type = db_type
        logger.debug(f"StatusRepository initialized for {db_type}")

    def _get_query(self, query_name: str) -> str:
        """Centralized query storage."""
        queries = {
            'mysql': {
                'get_iov_at': """
                    SELECT iov_id, begin_time, end_time FROM tb_chstatus_iov
                    WHERE begin_time <= %s
                    ORDER BY begin_time DESC LIMIT 1
                """,
                'get_next_iov_begin': "SELECT MIN(begin_time) FROM tb_chstatus_iov WHERE begin_time > %s",
                'get_channel_status': """
                    SELECT channel, status FROM tb_chstatus
                    WHERE iov_id = %s ORDER BY channel
                """,
            },
            'postgresql': {
                'get_iov_at': """
                    SELECT iov_id, begin_time, end_time FROM channel_status_iovs
                    WHERE begin_time <= %s
                    ORDER BY begin_time DESC LIMIT 1
                """,
                'get_next_iov_begin': "SELECT MIN(begin_time) FROM channel_status_iovs WHERE begin_time > %s",
                'get_channel_status': """
                    SELECT channel, status FROM channel_statuses
                    WHERE iov_id = %s ORDER BY channel
                """,
            }
        }
        try:
            return queries[self.db_type][query_name]
        except KeyError:
            logger.critical(f"Query '{query_name}' not defined for database type '{self.db_type}'")
            raise

    def get_iov_at(self, timestamp) -> Optional[List[Tuple]]:
        """
        Returns [(iov_id, begin_time, end_time)] for the IoV covering
        `timestamp` (a datetime), [] if none starts before it, or None on
        database error.
        """
        return self.pool.execute(self._get_query('get_iov_at'), args=(timestamp,))

    def get_next_iov_begin(self, begin_time) -> Optional[List[Tuple]]:
        return self.pool.execute(self._get_query('get_next_iov_begin'), args=(begin_time,))

    def get_channel_status(self, iov_id) -> Optional[List[Tuple]]:
        """Returns [(channel, status)] for an IoV, or None on database error."""
        return self.pool.execute(self._get_query('get_channel_status'), args=(iov_id,))

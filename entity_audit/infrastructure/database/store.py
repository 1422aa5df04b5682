"""SQL audit store. One transaction per drain, parameterized inserts in record order."""

import logging
from contextlib import contextmanager
from typing import Iterator, Sequence, Union

from sqlalchemy import MetaData
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from entity_audit.application.exceptions import PersistenceError
from entity_audit.domain.models.audit_row import AuditRow
from entity_audit.infrastructure.database.schema import audit_table

logger = logging.getLogger(__name__)


class SqlAuditStore:
    """Writes AuditRows through SQLAlchemy Core. Implements AuditStore protocol.

    ``bind`` is an Engine or a Connection. A Connection that already has a
    transaction open gets the audit rows inside a SAVEPOINT of it.
    """

    def __init__(self, bind: Union[Engine, Connection]) -> None:
        self._bind = bind
        self._metadata = MetaData()

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        if isinstance(self._bind, Engine):
            with self._bind.begin() as connection:
                yield connection
        elif self._bind.in_transaction():
            with self._bind.begin_nested():
                yield self._bind
        else:
            with self._bind.begin():
                yield self._bind

    def write_rows(self, rows: Sequence[AuditRow]) -> None:
        try:
            with self._transaction() as connection:
                for row in rows:
                    table = audit_table(row.table_name, self._metadata, schema=row.schema_name)
                    connection.execute(
                        table.insert().values(
                            type=row.type,
                            object_id=row.object_id,
                            diff=row.diff,
                            changer=row.changer,
                            created_at=row.created_at,
                        )
                    )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Audit transaction rolled back: {e}") from e
        logger.debug("audit_rows_written", extra={"rows": len(rows)})

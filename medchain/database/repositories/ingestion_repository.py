import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.rows import dict_row

from medchain.database.connection import get_connection
from medchain.pipeline.exceptions import IngestionNotFound, PersistenceError
from medchain.pipeline.models import IngestionRecord, IngestionStatus

_COLUMNS = """
    id, subject, filename, fingerprint, cid, tx_ref, block_ref,
    status, error_message, resume_attempts, created_at, updated_at
"""


@contextmanager
def _translate_errors(action: str) -> Generator[None, None, None]:
    try:
        yield
    except psycopg.Error as exc:
        raise PersistenceError(f"Metadata store failed to {action}: {exc}") from exc


def _parse_id(ingestion_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(ingestion_id)
    except (ValueError, TypeError, AttributeError) as exc:
        raise IngestionNotFound(f"Ingestion {ingestion_id} not found") from exc


def _row_to_record(row: dict[str, Any]) -> IngestionRecord:
    return IngestionRecord(
        id=str(row["id"]),
        subject=row["subject"],
        filename=row["filename"],
        fingerprint=row["fingerprint"],
        cid=row["cid"],
        tx_ref=row["tx_ref"],
        block_ref=row["block_ref"],
        status=IngestionStatus(row["status"]),
        error_message=row["error_message"],
        resume_attempts=row["resume_attempts"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class IngestionRepository:
    """Database operations for the ingestion_records table.

    Status transitions made by resume are guarded in SQL so two processes
    resuming the same record cannot both win.
    """

    def save(self, record: IngestionRecord) -> None:
        """Insert a finished (anchored or failed) ingestion record."""
        with _translate_errors("save ingestion record"), get_connection() as conn:
            conn.execute(
                """
                INSERT INTO ingestion_records
                    (id, subject, filename, fingerprint, cid, tx_ref, block_ref,
                     status, error_message, resume_attempts, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    record.id,
                    record.subject,
                    record.filename,
                    record.fingerprint,
                    record.cid,
                    record.tx_ref,
                    record.block_ref,
                    str(record.status),
                    record.error_message,
                    record.resume_attempts,
                    record.created_at,
                    record.updated_at,
                ),
            )
            conn.commit()

    def find_by_id(self, ingestion_id: str) -> IngestionRecord:
        """Find an ingestion record by ID.

        Raises:
            IngestionNotFound: if no record with this ID exists.
        """
        record_id = _parse_id(ingestion_id)
        with _translate_errors("load ingestion record"), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM ingestion_records WHERE id = %s",
                    (record_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise IngestionNotFound(f"Ingestion {ingestion_id} not found")
        return _row_to_record(row)

    def find_by_subject(self, subject: str, limit: int = 100) -> list[IngestionRecord]:
        return self._find_many("subject", subject, limit)

    def find_by_fingerprint(self, fingerprint: str, limit: int = 100) -> list[IngestionRecord]:
        return self._find_many("fingerprint", fingerprint, limit)

    def find_resumable(self, max_attempts: int, limit: int = 10) -> list[IngestionRecord]:
        """Failed records that already hold stored content and have attempts left."""
        with _translate_errors("list resumable ingestions"), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM ingestion_records
                    WHERE status = 'failed'
                      AND cid IS NOT NULL
                      AND fingerprint IS NOT NULL
                      AND resume_attempts < %s
                    ORDER BY updated_at
                    LIMIT %s
                    """,
                    (max_attempts, limit),
                )
                rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

    def claim_for_resume(self, ingestion_id: str, expected_attempts: int) -> bool:
        """Compare-and-increment resume_attempts while the record is still failed.

        Returns False when another process changed the record first.
        """
        with _translate_errors("claim ingestion for resume"), get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE ingestion_records
                    SET resume_attempts = resume_attempts + 1, updated_at = NOW()
                    WHERE id = %s
                      AND status = 'failed'
                      AND cid IS NOT NULL
                      AND resume_attempts = %s
                    """,
                    (ingestion_id, expected_attempts),
                )
                claimed = cur.rowcount == 1
            conn.commit()
        return claimed

    def mark_anchored(self, ingestion_id: str, tx_ref: str, block_ref: int) -> bool:
        """Transition failed -> anchored. Returns False if the record is no longer failed."""
        with _translate_errors("mark ingestion anchored"), get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE ingestion_records
                    SET status = 'anchored', tx_ref = %s, block_ref = %s,
                        error_message = NULL, updated_at = NOW()
                    WHERE id = %s AND status = 'failed'
                    """,
                    (tx_ref, block_ref, ingestion_id),
                )
                updated = cur.rowcount == 1
            conn.commit()
        return updated

    def record_failure(self, ingestion_id: str, error: str) -> None:
        """Store the latest error on a record that is still failed."""
        with _translate_errors("record ingestion failure"), get_connection() as conn:
            conn.execute(
                """
                UPDATE ingestion_records
                SET error_message = %s, updated_at = NOW()
                WHERE id = %s AND status = 'failed'
                """,
                (error, ingestion_id),
            )
            conn.commit()

    def _find_many(self, column: str, value: str, limit: int) -> list[IngestionRecord]:
        with _translate_errors(f"query ingestions by {column}"), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM ingestion_records
                    WHERE {column} = %s
                    ORDER BY created_at DESC
                    LIMIT %s
                    """,
                    (value, limit),
                )
                rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

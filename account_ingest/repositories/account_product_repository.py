"""
Repository for account product operations.
"""
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Iterator, List, Tuple

from account_ingest.models.account_product import AccountProduct
from account_ingest.models.results import BulkWriteOutcome, WriteError
from account_ingest.services.bulk_write_classifier import DUPLICATE_KEY_ERROR_CODE
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)

# SQLSTATE classes used when the driver does not expose one
NOT_NULL_VIOLATION_CODE = "23502"
INTEGRITY_VIOLATION_CODE = "23000"


def write_error_code(error: IntegrityError) -> str:
    """
    SQLSTATE-style code of an integrity failure.

    PostgreSQL drivers expose the SQLSTATE; SQLite only has a message.

    Args:
        error: Integrity error raised by the driver

    Returns:
        Five character SQLSTATE code
    """
    orig = error.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code

    message = str(orig)
    if "UNIQUE constraint failed" in message or "duplicate key" in message.lower():
        return DUPLICATE_KEY_ERROR_CODE
    if "NOT NULL constraint failed" in message:
        return NOT_NULL_VIOLATION_CODE
    return INTEGRITY_VIOLATION_CODE


class AccountProductRepository:
    """Repository for account product database operations."""

    @staticmethod
    def bulk_insert(db: Session, rows: List[dict]) -> BulkWriteOutcome:
        """
        Insert rows without ordering guarantees between them.

        The whole batch is tried as one multi-row insert first. If that hits
        an integrity error every row is retried on its own savepoint so one
        failing row does not block the others. Each failure is reported with
        its index and code instead of being raised.

        Args:
            db: Database session
            rows: Column values keyed by column name

        Returns:
            BulkWriteOutcome with the inserted count and per-row errors
        """
        if not rows:
            return BulkWriteOutcome(attempted=0, inserted_count=0)

        statement = insert(AccountProduct)

        try:
            with db.begin_nested():
                db.execute(statement, rows)
            db.commit()
            return BulkWriteOutcome(attempted=len(rows), inserted_count=len(rows))
        except IntegrityError:
            logger.debug(
                "Batch insert hit integrity errors, retrying rows individually",
                extra={"batch_size": len(rows)}
            )

        inserted = 0
        write_errors: List[WriteError] = []
        for index, row in enumerate(rows):
            try:
                with db.begin_nested():
                    db.execute(statement, [row])
                inserted += 1
            except IntegrityError as e:
                write_errors.append(WriteError(index=index, code=write_error_code(e), message=str(e.orig)))
        db.commit()

        return BulkWriteOutcome(attempted=len(rows), inserted_count=inserted, write_errors=write_errors)

    @staticmethod
    def count(db: Session) -> int:
        return db.execute(select(func.count()).select_from(AccountProduct)).scalar_one()

    @staticmethod
    def delete_all(db: Session) -> Tuple[int, str]:
        """
        Remove every account product.

        Dropping and recreating the table is tried first; a row-by-row
        DELETE is the fallback when that fails.

        Args:
            db: Database session

        Returns:
            Tuple of (removed row count, strategy used)
        """
        existing = AccountProductRepository.count(db)
        try:
            connection = db.connection()
            AccountProduct.__table__.drop(bind=connection)
            AccountProduct.__table__.create(bind=connection)
            db.commit()
            return existing, "drop"
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(
                "Table drop failed, falling back to delete",
                extra={"table": AccountProduct.__tablename__, "error": str(e)}
            )

        result = db.execute(delete(AccountProduct))
        db.commit()
        return result.rowcount, "delete"

    @staticmethod
    def iter_all(db: Session, fetch_size: int) -> Iterator[Tuple[str, str]]:
        """
        Stream (account_number, product_code) pairs in primary key order.

        Args:
            db: Database session
            fetch_size: Rows fetched per round trip

        Yields:
            Account number and product code of each stored record
        """
        statement = (
            select(AccountProduct.account_number, AccountProduct.product_code)
            .order_by(AccountProduct.account_product_id)
            .execution_options(yield_per=fetch_size)
        )
        for account_number, product_code in db.execute(statement):
            yield account_number, product_code

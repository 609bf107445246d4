"""Tests for account_ingest.repositories.account_product_repository"""

from __future__ import annotations

from types import SimpleNamespace

from sqlalchemy.exc import IntegrityError

from account_ingest.repositories.account_product_repository import (
    AccountProductRepository,
    write_error_code,
)
from account_ingest.services.bulk_write_classifier import DUPLICATE_KEY_ERROR_CODE
from account_ingest.validators.row_validator import RowValidator


def _rows(*pairs):
    return [RowValidator.validate_row(list(pair)).to_insert_params() for pair in pairs]


class TestBulkInsert:

    def test_inserts_all_rows(self, db):
        outcome = AccountProductRepository.bulk_insert(db, _rows(("1", "A"), ("2", "B")))

        assert outcome.attempted == 2
        assert outcome.inserted_count == 2
        assert outcome.write_errors == []
        assert AccountProductRepository.count(db) == 2

    def test_empty_batch(self, db):
        outcome = AccountProductRepository.bulk_insert(db, [])

        assert outcome.attempted == 0
        assert outcome.inserted_count == 0

    def test_duplicate_in_batch_does_not_block_other_rows(self, db):
        outcome = AccountProductRepository.bulk_insert(db, _rows(("1", "A"), ("2", "B"), ("1", "A"), ("3", "C")))

        assert outcome.inserted_count == 3
        assert [(e.index, e.code) for e in outcome.write_errors] == [(2, DUPLICATE_KEY_ERROR_CODE)]
        assert AccountProductRepository.count(db) == 3

    def test_rows_already_stored_are_duplicates(self, db):
        AccountProductRepository.bulk_insert(db, _rows(("1", "A")))

        outcome = AccountProductRepository.bulk_insert(db, _rows(("1", "A"), ("1", "B")))

        assert outcome.inserted_count == 1
        assert [e.index for e in outcome.write_errors] == [0]

    def test_same_account_with_other_product_is_distinct(self, db):
        outcome = AccountProductRepository.bulk_insert(db, _rows(("1", "A"), ("1", "B"), ("2", "A")))

        assert outcome.inserted_count == 3


class TestWriteErrorCode:

    def test_driver_sqlstate_is_used(self):
        error = IntegrityError("INSERT", {}, SimpleNamespace(pgcode="23503"))

        assert write_error_code(error) == "23503"

    def test_sqlite_unique_message_maps_to_duplicate_key(self):
        error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: account_products.account_product_id"))

        assert write_error_code(error) == DUPLICATE_KEY_ERROR_CODE

    def test_sqlite_not_null_message(self):
        error = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: account_products.product_code"))

        assert write_error_code(error) == "23502"

    def test_unknown_integrity_failure(self):
        error = IntegrityError("INSERT", {}, Exception("CHECK constraint failed"))

        assert write_error_code(error) == "23000"


class TestDeleteAll:

    def test_drops_and_recreates_table(self, db):
        AccountProductRepository.bulk_insert(db, _rows(("1", "A"), ("2", "B"), ("3", "C")))

        deleted, strategy = AccountProductRepository.delete_all(db)

        assert (deleted, strategy) == (3, "drop")
        assert AccountProductRepository.count(db) == 0

        AccountProductRepository.bulk_insert(db, _rows(("1", "A")))
        assert AccountProductRepository.count(db) == 1

    def test_empty_table(self, db):
        assert AccountProductRepository.delete_all(db) == (0, "drop")


def test_iter_all_streams_in_key_order(db):
    AccountProductRepository.bulk_insert(db, _rows(("2", "B"), ("1", "A"), ("1", "B")))

    assert list(AccountProductRepository.iter_all(db, fetch_size=2)) == [("1", "A"), ("1", "B"), ("2", "B")]

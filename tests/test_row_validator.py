"""Tests for account_ingest.validators.row_validator"""

from __future__ import annotations

import pytest

from account_ingest.validators.row_validator import RowValidator


class TestValidateRow:

    def test_valid_row_is_trimmed(self):
        result = RowValidator.validate_row(["  12345678901234 ", " ABC "])

        assert result.is_valid
        assert result.account_number == "12345678901234"
        assert result.product_code == "ABC"
        assert result.account_product_id == "12345678901234|ABC"

    def test_insert_params_use_column_names(self):
        params = RowValidator.validate_row(["1", "A"]).to_insert_params()

        assert params == {"account_product_id": "1|A", "account_number": "1", "product_code": "A"}

    def test_extra_columns_are_ignored(self):
        result = RowValidator.validate_row(["1", "A", "ignored", "also ignored"])

        assert result.is_valid
        assert result.product_code == "A"

    @pytest.mark.parametrize(
        "row",
        [
            None,
            [],
            ["12345"],
            ["", "ABC"],
            ["   ", "ABC"],
            ["1234567890123456", "ABC"],
            ["12|34", "ABC"],
            ["12345", ""],
            ["12345", "ABCDE"],
            ["12345", "A|B"],
        ],
    )
    def test_invalid_rows(self, row):
        result = RowValidator.validate_row(row)

        assert not result.is_valid
        assert result.message

    def test_boundary_lengths_are_valid(self):
        assert RowValidator.validate_row(["1" * 15, "ABCD"]).is_valid


def test_safe_trim_handles_none():
    assert RowValidator.safe_trim(None) == ""
    assert RowValidator.safe_trim("\t x \n") == "x"

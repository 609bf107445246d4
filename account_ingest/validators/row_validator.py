"""
Row validation logic.
"""
from typing import Optional, Sequence
from dataclasses import dataclass

from account_ingest.models.account_product import (
    ACCOUNT_NUMBER_MAX_LENGTH,
    ID_DELIMITER,
    PRODUCT_CODE_MAX_LENGTH,
    to_account_product_id,
)


@dataclass(frozen=True)
class ValidationResult:
    """Validation result."""
    is_valid: bool
    account_number: str = ""
    product_code: str = ""
    message: Optional[str] = None

    @property
    def account_product_id(self) -> str:
        return to_account_product_id(self.account_number, self.product_code)

    def to_insert_params(self) -> dict:
        """Column values for an insert-only write of this row."""
        return {
            "account_product_id": self.account_product_id,
            "account_number": self.account_number,
            "product_code": self.product_code,
        }


class RowValidator:
    """Validator for account/product CSV rows."""

    @staticmethod
    def safe_trim(value: Optional[str]) -> str:
        """
        Trim a raw field value.

        Args:
            value: Raw field value, possibly None

        Returns:
            Stripped value, empty string for None
        """
        if value is None:
            return ""
        return value.strip()

    @staticmethod
    def is_valid_account_number(account_number: str) -> bool:
        return (
            bool(account_number)
            and len(account_number) <= ACCOUNT_NUMBER_MAX_LENGTH
            and ID_DELIMITER not in account_number
        )

    @staticmethod
    def is_valid_product_code(product_code: str) -> bool:
        return (
            bool(product_code)
            and len(product_code) <= PRODUCT_CODE_MAX_LENGTH
            and ID_DELIMITER not in product_code
        )

    @staticmethod
    def validate_row(row: Optional[Sequence[str]]) -> ValidationResult:
        """
        Validate a single parsed row.

        Only the first two fields are read; extra columns are ignored.
        Invalid rows are expected input and never raise.

        Args:
            row: Parsed CSV fields

        Returns:
            ValidationResult carrying the trimmed values when valid
        """
        if row is None or len(row) < 2:
            return ValidationResult(is_valid=False, message="Row has fewer than two fields")

        account_number = RowValidator.safe_trim(row[0])
        product_code = RowValidator.safe_trim(row[1])

        if not RowValidator.is_valid_account_number(account_number):
            return ValidationResult(
                is_valid=False,
                account_number=account_number,
                product_code=product_code,
                message=f"Invalid account number: {account_number!r}"
            )

        if not RowValidator.is_valid_product_code(product_code):
            return ValidationResult(
                is_valid=False,
                account_number=account_number,
                product_code=product_code,
                message=f"Invalid product code: {product_code!r}"
            )

        return ValidationResult(
            is_valid=True,
            account_number=account_number,
            product_code=product_code
        )

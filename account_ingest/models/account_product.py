"""
SQLAlchemy model for account_products table.
"""
from sqlalchemy import Column, String

from account_ingest.app.db.database import Base

# Reserved separator; never valid inside an account number or product code
ID_DELIMITER = "|"

ACCOUNT_NUMBER_MAX_LENGTH = 15
PRODUCT_CODE_MAX_LENGTH = 4


def to_account_product_id(account_number: str, product_code: str) -> str:
    """
    Build the natural key of an account/product pair.

    The same pair always maps to the same id, so re-inserting it collides
    on the primary key.
    """
    return f"{account_number}{ID_DELIMITER}{product_code}"


class AccountProduct(Base):
    """Account product model representing the account_products table."""
    
    __tablename__ = "account_products"
    
    account_product_id = Column(String(ACCOUNT_NUMBER_MAX_LENGTH + PRODUCT_CODE_MAX_LENGTH + 1), primary_key=True)
    account_number = Column(String(ACCOUNT_NUMBER_MAX_LENGTH), nullable=False)
    product_code = Column(String(PRODUCT_CODE_MAX_LENGTH), nullable=False)
    
    def __repr__(self):
        return f"<AccountProduct(account_number={self.account_number}, product_code={self.product_code})>"

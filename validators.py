"""Input validation for addresses, bundles, fee amounts and endpoint URLs."""

from decimal import Decimal, InvalidOperation
from typing import Any, List, Sequence
from urllib.parse import urlparse

import base58
from solders.pubkey import Pubkey

from exceptions import (
    BundleValidationError,
    ConfigurationError,
    InvalidAddressError,
    InvalidAmountError,
)

SOLANA_ADDRESS_LENGTH = 32

LAMPORTS_PER_SOL = 1_000_000_000
MAX_BUNDLE_TRANSACTIONS = 5
SUPPORTED_ENCODINGS = ("base64", "base58")


def validate_solana_address(address: Any, field_name: str = "address") -> str:
    if not isinstance(address, str):
        raise InvalidAddressError(
            f"Address must be a string, got {type(address).__name__}",
            address=str(address)[:50],
            field_name=field_name
        )

    address = address.strip()

    if not address:
        raise InvalidAddressError("Address cannot be empty", address="", field_name=field_name)

    if len(address) < 32 or len(address) > 44:
        raise InvalidAddressError(
            f"Invalid address length: {len(address)} characters",
            address=address, field_name=field_name
        )

    try:
        decoded = base58.b58decode(address)
    except ValueError as e:
        raise InvalidAddressError(
            f"Invalid base58 encoding: {str(e)}",
            address=address, field_name=field_name
        )

    if len(decoded) != SOLANA_ADDRESS_LENGTH:
        raise InvalidAddressError(
            f"Decoded address has wrong length: {len(decoded)} bytes (expected {SOLANA_ADDRESS_LENGTH})",
            address=address, field_name=field_name
        )

    try:
        Pubkey.from_string(address)
    except Exception as e:
        raise InvalidAddressError(
            f"Public key validation failed: {str(e)}",
            address=address, field_name=field_name
        )

    return address


def validate_tip_accounts(accounts: Sequence[str]) -> List[str]:
    if not accounts:
        raise ConfigurationError("At least one tip account is required", parameter="tip_accounts")
    return [validate_solana_address(a, field_name="tip_account") for a in accounts]


def validate_encoding(encoding: Any, field_name: str = "encoding") -> str:
    if encoding not in SUPPORTED_ENCODINGS:
        raise BundleValidationError(
            f"Unsupported encoding {encoding!r}, expected one of: {', '.join(SUPPORTED_ENCODINGS)}",
            field_name=field_name
        )
    return encoding


def validate_encoded_transactions(
    transactions: Any,
    field_name: str = "transactions",
    max_transactions: int = MAX_BUNDLE_TRANSACTIONS
) -> List[str]:
    """Check bundle size and that every entry is a non-empty string.

    The payloads themselves stay opaque; nothing is decoded here.
    """
    if isinstance(transactions, (str, bytes)) or not isinstance(transactions, Sequence):
        raise BundleValidationError(
            f"Transactions must be a sequence of encoded strings, got {type(transactions).__name__}",
            field_name=field_name
        )

    count = len(transactions)
    if count == 0:
        raise BundleValidationError("Bundle is empty", field_name=field_name, transaction_count=0)

    if count > max_transactions:
        raise BundleValidationError(
            f"Bundle has {count} transactions, maximum is {max_transactions}",
            field_name=field_name, transaction_count=count
        )

    for idx, tx in enumerate(transactions):
        if not isinstance(tx, str) or not tx.strip():
            raise BundleValidationError(
                f"Transaction {idx} must be a non-empty encoded string",
                field_name=field_name, transaction_count=count
            )

    return list(transactions)


def validate_fee_amount(amount: Any, field_name: str = "total_fee_sol") -> Decimal:
    if isinstance(amount, bool):
        raise InvalidAmountError("Amount must be numeric", amount=str(amount), field_name=field_name)

    try:
        # str() keeps float inputs at their shortest repr instead of the binary expansion
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(
            f"Invalid amount: {amount!r}", amount=str(amount)[:50], field_name=field_name
        )

    if not value.is_finite():
        raise InvalidAmountError("Amount must be finite", amount=str(amount), field_name=field_name)

    if value < 0:
        raise InvalidAmountError("Amount cannot be negative", amount=str(amount), field_name=field_name)

    return value


def validate_url(url: Any, field_name: str = "url") -> str:
    if not isinstance(url, str) or not url.strip():
        raise ConfigurationError(f"{field_name} is required", parameter=field_name)

    url = url.strip()
    parsed = urlparse(url)

    if parsed.scheme.lower() not in ("http", "https"):
        raise ConfigurationError(
            f"{field_name} must use http or https, got {parsed.scheme or 'no scheme'}",
            parameter=field_name
        )

    if not parsed.netloc:
        raise ConfigurationError(f"{field_name} must include a host", parameter=field_name)

    return url


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


__all__ = [
    "LAMPORTS_PER_SOL",
    "MAX_BUNDLE_TRANSACTIONS",
    "SUPPORTED_ENCODINGS",
    "validate_solana_address",
    "validate_tip_accounts",
    "validate_encoding",
    "validate_encoded_transactions",
    "validate_fee_amount",
    "validate_url",
    "lamports_to_sol",
]

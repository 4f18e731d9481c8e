"""
Unit tests for document number formatting.
"""

from __future__ import annotations

import pytest

from sync_guesty.errors import ValidationError
from sync_guesty.services.documents import format_document_number


@pytest.mark.unit
@pytest.mark.parametrize(
    "kind,year,number,expected",
    [
        ("quote", 2025, 1, "A-2025-0001"),
        ("invoice", 2025, 1, "2025-0001"),
        ("invoice", 2025, 42, "2025-0042"),
        ("quote", 2026, 12345, "A-2026-12345"),
    ],
)
def test_format_document_number(kind: str, year: int, number: int, expected: str) -> None:
    """Test that quotes carry the A- prefix and numbers are zero-padded to four digits."""
    assert format_document_number(kind, year, number) == expected


@pytest.mark.unit
def test_format_document_number_rejects_unknown_kind() -> None:
    """Test that only quotes and invoices are numbered."""
    with pytest.raises(ValidationError):
        format_document_number("receipt", 2025, 1)

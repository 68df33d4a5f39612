"""Export package."""

from household_ledger.export.spreadsheet import (
    CSV_MIME,
    EXPORT_COLUMNS,
    XLSX_MIME,
    export_filename,
    transactions_to_csv,
    transactions_to_frame,
    transactions_to_xlsx,
)

__all__ = [
    "CSV_MIME",
    "EXPORT_COLUMNS",
    "XLSX_MIME",
    "export_filename",
    "transactions_to_csv",
    "transactions_to_frame",
    "transactions_to_xlsx",
]

"""Importers turning delimited exchange exports into raw records."""

from importers.csv_records import CsvRecordReader, RecordImportError, lookup_wallet

__all__ = ["CsvRecordReader", "RecordImportError", "lookup_wallet"]

"""Output generation for CSV exports."""

from bank_ingest.output.csv_exporter import CSVExporter

__all__ = ["CSVExporter"]

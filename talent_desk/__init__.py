"""talent-desk: spreadsheet imports and roster metrics for a talent agency."""

__version__ = "0.1.0"

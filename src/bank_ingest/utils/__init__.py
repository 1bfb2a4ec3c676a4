"""Shared text, date, amount, logging and output helpers."""

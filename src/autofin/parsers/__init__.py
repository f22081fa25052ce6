"""Parsers for statement exports."""

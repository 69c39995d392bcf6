"""Airtable infrastructure package."""

from .airtable_record_store import AirtableRecordStore

__all__ = ["AirtableRecordStore"]

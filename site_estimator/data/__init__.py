"""
Data loading, parsing and schemas.

Provides Pydantic schemas for observations and site estimates, the record
parser and the chunked reader for the bulk cell export.
"""
from site_estimator.data.schemas import Observation, EstimatedSite, SiteKey
from site_estimator.data.parser import parse_record, parse_records, ParseResult
from site_estimator.data.loaders import read_cell_export, filter_records, RecordFilter

__all__ = [
    'Observation',
    'EstimatedSite',
    'SiteKey',
    'parse_record',
    'parse_records',
    'ParseResult',
    'read_cell_export',
    'filter_records',
    'RecordFilter',
]

"""Generic table engine: schemas, record codec, table lifecycle and queries."""

from .codec import Decoded, JsonField, Raw, decode_json, encode_json
from .query import AttributesContain, DateRange, Eq, Filter, OrderBy, Page, Pagination, Prefix, QueryEngine
from .tables import TableManager
from .types import ColumnDefinition, ColumnType, TableSchema

__all__ = [
    "AttributesContain",
    "ColumnDefinition",
    "ColumnType",
    "DateRange",
    "Decoded",
    "Eq",
    "Filter",
    "JsonField",
    "OrderBy",
    "Page",
    "Pagination",
    "Prefix",
    "QueryEngine",
    "Raw",
    "TableManager",
    "TableSchema",
    "decode_json",
    "encode_json",
]

import logging

from blockcopy.batch import BatchBuilder
from blockcopy.dialects import FIREBIRD, SQLITE, DialectProfile, profile_for
from blockcopy.errors import (
    ArgumentError,
    BulkCopyError,
    EngineError,
    MissingSourceColumnError,
    TableNotFoundError,
    UnsupportedColumnTypeError,
    UnsupportedDialectError,
    ValueFormatError,
)
from blockcopy.executor import BatchExecutor
from blockcopy.literals import to_literal
from blockcopy.schema import ColumnKind, Schema, resolve_schema
from blockcopy.session import BulkCopy, CopyOptions, CopyResult, bulk_copy

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    'ArgumentError',
    'BatchBuilder',
    'BatchExecutor',
    'BulkCopy',
    'BulkCopyError',
    'ColumnKind',
    'CopyOptions',
    'CopyResult',
    'DialectProfile',
    'EngineError',
    'FIREBIRD',
    'MissingSourceColumnError',
    'SQLITE',
    'Schema',
    'TableNotFoundError',
    'UnsupportedColumnTypeError',
    'UnsupportedDialectError',
    'ValueFormatError',
    'bulk_copy',
    'profile_for',
    'resolve_schema',
    'to_literal',
]

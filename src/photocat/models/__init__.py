from photocat.models.enums import FileOutcome, MergeMode
from photocat.models.file_record import FileRecord
from photocat.models.mapping import MappingRule, MappingRules
from photocat.models.query import DateRange, QueryFilters, SummaryOptions
from photocat.models.row import DerivedRow
from photocat.models.summary import CountTable, SummaryResult, ValueCount

__all__ = [
    "CountTable",
    "DateRange",
    "DerivedRow",
    "FileOutcome",
    "FileRecord",
    "MappingRule",
    "MappingRules",
    "MergeMode",
    "QueryFilters",
    "SummaryOptions",
    "SummaryResult",
    "ValueCount",
]

from enum import StrEnum


class MergeMode(StrEnum):
    OVERWRITE = "overwrite"
    MERGE = "merge"


class FileOutcome(StrEnum):
    INDEXED = "indexed"
    UNCHANGED = "unchanged"
    FAILED = "failed"

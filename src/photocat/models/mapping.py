"""Value remapping rules applied to raw metadata at query time.

Rules are loaded from ``mapping.toml`` in the library folder::

    [[mapping]]
    variable = "Lens"
    match_values = ["15 mm f/4.5", "15.0 mm f/4.5"]
    assign_value = "15mm f/4.5"
"""

import json
import tomllib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from photocat.errors import ConfigurationError
from photocat.models.base import ensure_non_empty_text


def value_to_text(value: Any) -> str:
    """Render a raw JSON value the way rules and reports compare it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, ensure_ascii=False)
    return str(value)


class MappingRule(BaseModel):
    variable: str
    match_values: frozenset[str]
    assign_value: str

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("variable")
    @classmethod
    def _validate_variable(cls, value: str) -> str:
        return ensure_non_empty_text(value, "variable")

    @field_validator("match_values", mode="before")
    @classmethod
    def _coerce_match_values(cls, value: Any) -> frozenset[str]:
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise ValueError("match_values must be a list of values")
        values = frozenset(value_to_text(item) for item in value)
        if not values:
            raise ValueError("match_values cannot be empty")
        return values

    @field_validator("assign_value", mode="before")
    @classmethod
    def _coerce_assign_value(cls, value: Any) -> str:
        if value is None:
            raise ValueError("assign_value is required")
        return value_to_text(value)


class MappingRules(BaseModel):
    """Immutable rule set, indexed by variable and raw value for lookups."""

    rules: tuple[MappingRule, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True, extra="forbid")

    _lookup: dict[str, dict[str, str]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        lookup: dict[str, dict[str, str]] = {}
        for rule in self.rules:
            assigned = lookup.setdefault(rule.variable, {})
            overlap = sorted(rule.match_values.intersection(assigned))
            if overlap:
                raise ConfigurationError(
                    f"mapping rules for '{rule.variable}' overlap on values: {', '.join(overlap)}"
                )
            for raw in rule.match_values:
                assigned[raw] = rule.assign_value
        self._lookup = lookup

    def __len__(self) -> int:
        return len(self.rules)

    def lookup(self, variable: str, raw: str) -> str | None:
        return self._lookup.get(variable, {}).get(raw)


def load_mapping_rules(path: Path) -> MappingRules:
    """Load rules from a TOML file; a missing file yields an empty rule set.

    Raises:
        ConfigurationError: If the file cannot be parsed, has the wrong shape,
            or two rules for one variable claim the same raw value.
    """
    if not path.exists():
        return MappingRules()
    try:
        with path.open("rb") as fh:
            parsed = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"cannot read mapping file {path}: {e}") from e

    entries = parsed.get("mapping", [])
    if not isinstance(entries, list):
        raise ConfigurationError(f"{path}: 'mapping' must be an array of tables")
    try:
        rules = tuple(MappingRule.model_validate(entry) for entry in entries)
    except ValidationError as e:
        raise ConfigurationError(f"{path}: invalid mapping rule: {e}") from e
    return MappingRules(rules=rules)

"""
Configuration Loader (``producao_config.loader``).

Responsibility
--------------
Loads YAML documents and parses them into typed ``producao_config.schema``
and ``producao_kernel.domain.tax_tables`` dataclass instances.  Runtime
callers go through the entrypoints in ``producao_config``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends only on
``producao_kernel``; never on engines or services.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Monetary values and rates are parsed as ``Decimal`` from their string
  form; YAML floats never reach arithmetic.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Invalid month or amount  -> ``ValueError``.

Audit relevance
---------------
``compute_checksum`` lets auditors verify that the tables used by a run
match a known, version-controlled baseline.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from producao_config.schema import CategoryRoots, RunConfig
from producao_kernel.domain.records import ContributionClass
from producao_kernel.domain.tax_tables import (
    ContributionParameters,
    TaxBracket,
    TaxBracketTable,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Preconditions:
        - ``path`` must point to an existing, readable YAML file.
    Postconditions:
        - Returns a ``dict`` (possibly empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a Decimal from a YAML scalar, naming the field on failure."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{name}: invalid number {value!r}") from e


def parse_year_month(value: Any) -> tuple[int, int]:
    """
    Parse a fiscal month written as ``YYYY-MM``.

    Raises:
        ValueError: if ``value`` is not a valid ``YYYY-MM`` string.
    """
    if not isinstance(value, str):
        raise ValueError(f"Cannot parse fiscal month from {value!r}")
    try:
        year_text, month_text = value.split("-")
        year, month = int(year_text), int(month_text)
    except ValueError as e:
        raise ValueError(f"Cannot parse fiscal month from {value!r}") from e
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in {value!r}")
    return year, month


def parse_bracket(data: dict[str, Any]) -> TaxBracket:
    """Parse a TaxBracket from a dict with ``min``, ``max``, ``rate``, ``deduction``."""
    maximum = data["max"]
    return TaxBracket(
        minimum=parse_decimal(data["min"], "min"),
        maximum=parse_decimal(maximum, "max") if maximum is not None else None,
        rate=parse_decimal(data["rate"], "rate"),
        deduction=parse_decimal(data["deduction"], "deduction"),
    )


def parse_income_tax_table(data: dict[str, Any]) -> TaxBracketTable:
    """
    Parse a ``TaxBracketTable`` from a dict.

    Preconditions:
        - ``data`` contains ``start``, ``per_dependent_deduction`` and a
          non-empty ``brackets`` list.
    Raises:
        KeyError: if required keys are missing.
        ValueError: if months, amounts or bracket ordering are invalid.
    """
    end = data.get("end")
    table = TaxBracketTable(
        start=parse_year_month(data["start"]),
        end=parse_year_month(end) if end else None,
        brackets=tuple(parse_bracket(b) for b in data["brackets"]),
        per_dependent_deduction=parse_decimal(
            data["per_dependent_deduction"], "per_dependent_deduction"
        ),
        simplified_discount_allowed=bool(data.get("simplified_discount_allowed", False)),
        simplified_discount_rate=parse_decimal(
            data.get("simplified_discount_rate", "0.25"), "simplified_discount_rate"
        ),
    )
    return table


def parse_income_tax_tables(data: dict[str, Any]) -> tuple[TaxBracketTable, ...]:
    """Parse every table of an income tax document and reject overlaps."""
    tables = tuple(
        sorted(
            (parse_income_tax_table(t) for t in data["tables"]),
            key=lambda t: t.start,
        )
    )
    for previous, current in zip(tables, tables[1:]):
        if previous.end is None or previous.end >= current.start:
            raise ValueError(
                f"Income tax tables starting {previous.start} and "
                f"{current.start} overlap"
            )
    return tables


def parse_contribution(data: dict[str, Any]) -> ContributionParameters:
    """Parse contribution parameters: ``ceiling_base`` and ``rates`` per class."""
    return ContributionParameters(
        rates={
            ContributionClass(name): parse_decimal(rate, f"rates.{name}")
            for name, rate in data["rates"].items()
        },
        ceiling_base=parse_decimal(data["ceiling_base"], "ceiling_base"),
    )


def parse_category_roots(data: dict[str, Any]) -> CategoryRoots:
    """Parse category roots; the three allocation roots are required."""
    optional = ("advance", "health_insurance", "tax", "distributed_surplus")
    return CategoryRoots(
        client_revenue=int(data["client_revenue"]),
        client_cost=int(data["client_cost"]),
        internal_overhead=int(data["internal_overhead"]),
        **{
            name: int(data[name])
            for name in optional
            if data.get(name) is not None
        },
    )


def parse_run_config(data: dict[str, Any]) -> RunConfig:
    """
    Parse a ``RunConfig`` from a dict.

    Raises:
        KeyError: if ``category_roots`` or ``internal_client_references``
            is missing.
        ConfigurationError: if a value is out of range.
    """
    override = data.get("business_days_override")
    return RunConfig(
        category_roots=parse_category_roots(data["category_roots"]),
        internal_client_references=frozenset(
            str(ref) for ref in data["internal_client_references"]
        ),
        pay_on_business_day_n=int(data.get("pay_on_business_day_n", 5)),
        max_admin_percent=parse_decimal(
            data.get("max_admin_percent", "10"), "max_admin_percent"
        ),
        business_days_override=int(override) if override is not None else None,
        forecast_mode=bool(data.get("forecast_mode", False)),
        holiday_country=data.get("holiday_country", "BR"),
        holiday_subdivision=data.get("holiday_subdivision"),
        vacation_reserve_payout_month=int(data.get("vacation_reserve_payout_month", 12)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Returns a hex-encoded SHA-256 hash string.
        - Identical ``data`` always produces identical checksums
          (deterministic).
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

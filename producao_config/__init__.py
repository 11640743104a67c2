"""
producao_config -- public entrypoints for run configuration and tax tables.

Responsibility:
    Loads the statutory tables shipped in ``producao_config/tables`` and
    caller-supplied run configuration files.  Services receive the parsed,
    frozen objects; nothing else in the package reads configuration files.

Architecture position:
    Configuration -- YAML-driven, sits above ``producao_kernel`` and below
    ``producao_services``.  Engines never import this package.

Invariants enforced:
    - Tables are loaded with ``yaml.safe_load`` and parsed into frozen
      dataclasses; amounts are exact Decimals.
    - Income tax tables never overlap.

Failure modes:
    - ``FileNotFoundError`` -- a table or config file is missing.
    - ``ValueError`` / ``KeyError`` -- malformed content.
    - ``ConfigurationError`` -- run settings out of range.

Audit relevance:
    Every load emits a ``PRODUCAO_CONFIG_TRACE`` log entry carrying the
    SHA-256 checksum of the parsed document, tying a run's withholdings to
    the exact table version that produced them.
"""

from __future__ import annotations

from pathlib import Path

from producao_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_contribution,
    parse_income_tax_tables,
    parse_run_config,
)
from producao_config.schema import CategoryRoots, RunConfig, TaxTables
from producao_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default statutory tables directory
_DEFAULT_TABLES_DIR = Path(__file__).parent / "tables"


def load_tax_tables(tables_dir: Path | None = None) -> TaxTables:
    """Load the income tax tables and contribution parameters.

    Args:
        tables_dir: Directory holding ``irpf.yaml`` and ``inss.yaml``.
            Defaults to producao_config/tables/.

    Raises:
        FileNotFoundError: If either file is missing.
        ValueError: If a table is malformed or tables overlap.
    """
    directory = tables_dir or _DEFAULT_TABLES_DIR
    irpf_data = load_yaml_file(directory / "irpf.yaml")
    inss_data = load_yaml_file(directory / "inss.yaml")

    tables = TaxTables(
        income_tax=parse_income_tax_tables(irpf_data),
        contribution=parse_contribution(inss_data),
        income_tax_checksum=compute_checksum(irpf_data),
        contribution_checksum=compute_checksum(inss_data),
    )

    _logger.info(
        "PRODUCAO_CONFIG_TRACE",
        extra={
            "trace_type": "PRODUCAO_CONFIG_TRACE",
            "source": str(directory),
            "income_tax_table_count": len(tables.income_tax),
            "income_tax_checksum": tables.income_tax_checksum,
            "contribution_checksum": tables.contribution_checksum,
        },
    )
    return tables


def load_run_config(path: Path) -> RunConfig:
    """Load a run configuration YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If a required setting is missing.
        ConfigurationError: If a setting is out of range.
    """
    data = load_yaml_file(path)
    config = parse_run_config(data)
    _logger.info(
        "PRODUCAO_CONFIG_TRACE",
        extra={
            "trace_type": "PRODUCAO_CONFIG_TRACE",
            "source": str(path),
            "checksum": compute_checksum(data),
            "forecast_mode": config.forecast_mode,
            "pay_on_business_day_n": config.pay_on_business_day_n,
        },
    )
    return config


__all__ = [
    "CategoryRoots",
    "RunConfig",
    "TaxTables",
    "load_run_config",
    "load_tax_tables",
]

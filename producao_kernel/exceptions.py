"""
Typed exception hierarchy for the production allocation engine.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ProducaoError:

    ProducaoError (base)
    |
    +-- DataQualityError          upstream records must be fixed
    +-- UnsupportedPeriodError    no tax table covers the fiscal month
    +-- ConfigurationError        caller misconfiguration
    +-- PartialWriteFailure       one worker's result failed downstream

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised                              | Aborts run
------------------------|------------------------------------------|-----------
DATA_QUALITY            | bad customer reference, unknown category,| yes
                        | revenue without time, time without       |
                        | revenue                                  |
UNSUPPORTED_PERIOD      | no IRPF table for (year, month)          | yes, before
                        |                                          | allocation
CONFIGURATION_ERROR     | zero business days, zero revenue with    | yes
                        | overhead, surplus without internal time  |
PARTIAL_WRITE_FAILURE   | publishing one worker's bills failed     | no

===============================================================================
HANDLING PATTERNS
===============================================================================

1. DATA QUALITY problems are collected, never raised one at a time:

    except DataQualityError as e:
        for problem in e.problems:
            report(problem.kind, problem.message, problem.records)

2. PARTIAL WRITE failures are returned on the run result; callers decide
   whether to escalate them:

    result = orchestrator.run_allocation(period_start, config)
    result.raise_for_failures()

None of these errors is retried automatically.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


class ProducaoError(Exception):
    """
    Base exception for all production engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PRODUCAO_ERROR"


# Data quality


@dataclass(frozen=True)
class DataProblem:
    """A single data-quality finding with the offending records attached."""

    kind: str
    message: str
    records: tuple[Mapping[str, Any], ...] = field(default_factory=tuple)


class DataQualityError(ProducaoError):
    """Source data cannot be allocated until it is fixed upstream.

    Every problem found in a pass is reported together so all of them can
    be fixed at once.
    """

    code: str = "DATA_QUALITY"

    def __init__(self, problems: Iterable[DataProblem]):
        self.problems = tuple(problems)
        lines = [f"- [{p.kind}] {p.message}" for p in self.problems]
        super().__init__(
            f"{len(self.problems)} data quality problem(s) found:\n"
            + "\n".join(lines)
        )

    @property
    def kinds(self) -> frozenset[str]:
        return frozenset(p.kind for p in self.problems)


# Tax tables


class UnsupportedPeriodError(ProducaoError):
    """No income tax bracket table covers the requested fiscal month."""

    code: str = "UNSUPPORTED_PERIOD"

    def __init__(self, fiscal_year: int, fiscal_month: int):
        self.fiscal_year = fiscal_year
        self.fiscal_month = fiscal_month
        super().__init__(
            f"No income tax table for {fiscal_year:04d}-{fiscal_month:02d}"
        )


# Configuration


class ConfigurationError(ProducaoError):
    """The run configuration or the month's inputs make allocation undefined."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid configuration for {setting}: {reason}")


# Downstream writes


class PartialWriteFailure(ProducaoError):
    """One or more workers' results could not be published.

    A single-worker failure carries ``worker_tax_id``, ``document_number``
    and ``reason``.  The aggregated form built with :meth:`aggregate` keeps
    the individual failures in ``failures``.
    """

    code: str = "PARTIAL_WRITE_FAILURE"

    def __init__(
        self,
        worker_tax_id: str | None,
        document_number: str | None,
        reason: str,
        failures: Sequence[PartialWriteFailure] = (),
    ):
        self.worker_tax_id = worker_tax_id
        self.document_number = document_number
        self.reason = reason
        self.failures = tuple(failures)
        if self.failures:
            message = f"{len(self.failures)} worker result(s) failed to publish"
        else:
            message = (
                f"Failed to publish {document_number} "
                f"for worker {worker_tax_id}: {reason}"
            )
        super().__init__(message)

    @classmethod
    def aggregate(cls, failures: Sequence[PartialWriteFailure]) -> PartialWriteFailure:
        reasons = "; ".join(f"{f.worker_tax_id}: {f.reason}" for f in failures)
        return cls(None, None, reasons, failures=failures)

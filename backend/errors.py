"""
SolarQuote — Error Taxonomy
Exceptions raised by the quote pipeline plus explicit Ok / Err result types
for the upstream calls that are allowed to fail.
"""

from dataclasses import dataclass
from typing import Any, Union


class QuoteError(Exception):
    """Base class for every error the quote pipeline knows how to classify."""


class InvalidInput(QuoteError):
    """Postcode malformed or house number missing. Reported to the caller (400)."""


class UpstreamUnavailable(QuoteError):
    """postcodes.io or PVGIS failed. Recovered locally with the fallback estimate."""


class LookupMiss(QuoteError):
    """Self-consumption table has no usable band / row / fraction."""


class PersistenceFailure(QuoteError):
    """Lead store could not be written."""


class SyncFailure(QuoteError):
    """Brevo contact or email call failed."""


# ── Result types ──────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Err:
    error: QuoteError


Result = Union[Ok, Err]

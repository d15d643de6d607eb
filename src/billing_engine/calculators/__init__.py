"""Billing calculation engine."""

from billing_engine.calculators.incentive_policy import IncentivePolicy
from billing_engine.calculators.line_builder import InvoiceLineBuilder
from billing_engine.calculators.rate_resolver import RateResolver
from billing_engine.calculators.types import (
    IncentivePrecedence,
    InvoiceCandidate,
    LineItemCandidate,
    RateSnapshot,
)

__all__ = [
    "IncentivePolicy",
    "IncentivePrecedence",
    "InvoiceCandidate",
    "InvoiceLineBuilder",
    "LineItemCandidate",
    "RateResolver",
    "RateSnapshot",
]

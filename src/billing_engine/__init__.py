"""Consulting billing engine.

Freezes rates on approved time entries, records fractional incentive
earnings, groups billable hours into per-client invoices and submits them
to Bill.com.
"""

__version__ = "0.1.0"

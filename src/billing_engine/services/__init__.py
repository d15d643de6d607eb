"""Business services for the billing engine."""

from billing_engine.services.billcom_config_service import BillComConfigService, ConfigStatus
from billing_engine.services.incentive_service import IncentiveService, MyIncentives, YearEarnings
from billing_engine.services.invoice_service import InvoiceService
from billing_engine.services.notification_service import (
    LoggingNotifier,
    NotificationService,
    NotificationType,
    Notifier,
)
from billing_engine.services.reporting_service import (
    CompanySummaryReport,
    Form1099Report,
    ProjectProfitabilityReport,
    ReportingService,
)
from billing_engine.services.state_machine import (
    BatchStatus,
    InvoiceStateMachine,
    InvoiceStatus,
    TimeEntryStateMachine,
    TimeEntryStatus,
)
from billing_engine.services.submission_service import (
    InvoiceSubmissionResult,
    SubmissionService,
    SubmissionSummary,
)
from billing_engine.services.time_entry_service import EntryDraft, TimeEntryService

__all__ = [
    "BatchStatus",
    "BillComConfigService",
    "CompanySummaryReport",
    "ConfigStatus",
    "EntryDraft",
    "Form1099Report",
    "IncentiveService",
    "InvoiceService",
    "InvoiceStateMachine",
    "InvoiceStatus",
    "InvoiceSubmissionResult",
    "LoggingNotifier",
    "MyIncentives",
    "NotificationService",
    "NotificationType",
    "Notifier",
    "ProjectProfitabilityReport",
    "ReportingService",
    "SubmissionService",
    "SubmissionSummary",
    "TimeEntryService",
    "TimeEntryStateMachine",
    "TimeEntryStatus",
    "YearEarnings",
]

from casework.case_tasks.models import CaseTask
from casework.cases.models import Case, CaseActivity
from casework.documents.models import CaseDocument
from casework.execution.models import DailyLog, ExecutionPlan, ExecutionPlanDay, JMSRecord
from casework.finance.models import CaseExpense, CasePayment, SalaryLedgerEntry
from casework.notifications.models import Notification
from casework.platform.ledger.models import JournalEntry, JournalLine, LedgerAccount

__all__ = [
    "Case",
    "CaseActivity",
    "CaseDocument",
    "CaseExpense",
    "CaseTask",
    "CasePayment",
    "DailyLog",
    "ExecutionPlan",
    "ExecutionPlanDay",
    "JMSRecord",
    "JournalEntry",
    "JournalLine",
    "LedgerAccount",
    "Notification",
    "SalaryLedgerEntry",
]

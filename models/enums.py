from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# PAYMENTS
# -----------------------------------------------------
class PaymentType(BaseStrEnum):
    rent = "rent"
    deposit = "deposit"
    utilities = "utilities"
    maintenance = "maintenance"
    other = "other"


class PaymentMethod(BaseStrEnum):
    bank_transfer = "bank_transfer"
    cash = "cash"
    check = "check"
    credit_card = "credit_card"
    debit_card = "debit_card"


class PaymentStatus(BaseStrEnum):
    """Only `completed` counts as collected income."""

    pending = "pending"
    completed = "completed"
    failed = "failed"
    overdue = "overdue"


class SubmissionStatus(BaseStrEnum):
    """Review state of a tenant-submitted payment."""

    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# -----------------------------------------------------
# MAINTENANCE
# -----------------------------------------------------
class MaintenancePriority(BaseStrEnum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class MaintenanceStatus(BaseStrEnum):
    """Workflow state for a maintenance request."""

    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"

    @classmethod
    def open_states(cls):
        return [cls.pending.value, cls.in_progress.value]


# -----------------------------------------------------
# COMMUNITY BOARD
# -----------------------------------------------------
class PostType(BaseStrEnum):
    announcement = "announcement"
    maintenance = "maintenance"
    social = "social"
    complaint = "complaint"
    question = "question"

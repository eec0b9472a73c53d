from enum import Enum


class FeeComponentType(str, Enum):
    TUITION = "tuition"
    ADMISSION = "admission"
    TRANSPORT = "transport"
    LAB = "lab"
    LIBRARY = "library"
    SPORTS = "sports"
    EXAM = "exam"
    UNIFORM = "uniform"
    MISC = "misc"


class DiscountType(str, Enum):
    """Shared by scholarships and per-student custom discounts."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class ScholarshipBasis(str, Enum):
    MERIT = "merit"
    NEED_BASED = "need_based"
    SPORTS = "sports"
    SIBLING = "sibling"
    STAFF_WARD = "staff_ward"
    GOVERNMENT = "government"
    CUSTOM = "custom"


class FeeStructureSource(str, Enum):
    BATCH_DEFAULT = "batch_default"
    CUSTOM = "custom"


class InstallmentStatus(str, Enum):
    upcoming = "upcoming"
    due = "due"
    partial = "partial"
    overdue = "overdue"
    paid = "paid"


class PaymentMode(str, Enum):
    CASH = "cash"
    UPI = "upi"
    BANK = "bank"


class PaymentLinkStatus(str, Enum):
    active = "active"
    paid = "paid"
    expired = "expired"
    cancelled = "cancelled"


class StudentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

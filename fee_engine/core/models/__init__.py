from fee_engine.core.models.tenant import Tenant
from fee_engine.core.models.academic_session import AcademicSession
from fee_engine.core.models.batch import Batch
from fee_engine.core.models.student import Student
from fee_engine.core.models.fee_component import FeeComponent
from fee_engine.core.models.scholarship import Scholarship, StudentScholarship
from fee_engine.core.models.batch_fee_structure import BatchFeeLineItem, BatchFeeStructure
from fee_engine.core.models.student_fee_structure import StudentFeeLineItem, StudentFeeStructure
from fee_engine.core.models.emi_plan_template import EMIPlanTemplate
from fee_engine.core.models.fee_installment import FeeInstallment
from fee_engine.core.models.installment_payment import InstallmentPayment
from fee_engine.core.models.receipt import Receipt
from fee_engine.core.models.payment_link import PaymentLink
from fee_engine.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "AcademicSession",
    "Batch",
    "BatchFeeLineItem",
    "BatchFeeStructure",
    "EMIPlanTemplate",
    "FeeAuditLog",
    "FeeComponent",
    "FeeInstallment",
    "InstallmentPayment",
    "PaymentLink",
    "Receipt",
    "Scholarship",
    "Student",
    "StudentFeeLineItem",
    "StudentFeeStructure",
    "StudentScholarship",
    "Tenant",
]

# Global Constants

class Roles:
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"

# Callers allowed to approve, reject, allocate and manage master data
ELEVATED_ROLES = (Roles.ADMIN, Roles.MANAGER)


class TransactionTypes:
    EXPENSE = "expense"
    PAYMENT = "payment"
    INCOME = "income"

# Types counted as revenue in every summary
REVENUE_TYPES = (TransactionTypes.PAYMENT, TransactionTypes.INCOME)


class ApprovalStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentStatus:
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


class MaterialRequestStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PURCHASED = "purchased"


class ExpenseCategories:
    OTHER = "other"
    MATERIALS = "materials"


MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

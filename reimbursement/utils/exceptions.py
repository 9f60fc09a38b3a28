"""
Workflow Exceptions
Typed errors raised by the services and mapped to HTTP responses in main.py

    WorkflowError
    +-- ValidationError          VALIDATION_ERROR        400
    +-- Forbidden                FORBIDDEN               403
    +-- NotFound                 NOT_FOUND               404
    +-- AlreadyDecided           ALREADY_DECIDED         409
    |   +-- ExpenseAlreadyFinalized  EXPENSE_FINALIZED   409
    +-- OutOfOrderDecision       OUT_OF_ORDER_DECISION   409
    +-- ConversionUnavailable    CONVERSION_UNAVAILABLE  503
    +-- PersistenceFailure       PERSISTENCE_FAILURE     500
"""

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class for every error the workflow services raise"""

    code: str = "WORKFLOW_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(WorkflowError):
    """Malformed or missing input, rejected before anything is persisted"""

    code = "VALIDATION_ERROR"
    status_code = 400


class Forbidden(WorkflowError):
    """Caller lacks the role or ownership for the action"""

    code = "FORBIDDEN"
    status_code = 403


class NotFound(WorkflowError):
    """Referenced entity does not exist (or is outside the caller's company)"""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} {entity_id} not found",
            {"entity": entity, "id": entity_id}
        )
        self.entity = entity
        self.entity_id = entity_id


class AlreadyDecided(WorkflowError):
    """A decision was attempted on an approval step that is already terminal"""

    code = "ALREADY_DECIDED"
    status_code = 409

    def __init__(self, approval_id: int, status: str):
        super().__init__(
            f"Approval step {approval_id} has already been {status}",
            {"approval_id": approval_id, "status": status}
        )
        self.approval_id = approval_id
        self.status = status


class ExpenseAlreadyFinalized(AlreadyDecided):
    """The step is pending but its expense already reached a terminal status"""

    code = "EXPENSE_FINALIZED"

    def __init__(self, approval_id: int, expense_id: int, expense_status: str):
        super().__init__(approval_id, "pending")
        self.message = f"Expense {expense_id} is already {expense_status}; no further decisions are accepted"
        self.args = (self.message,)
        self.details = {
            "approval_id": approval_id,
            "expense_id": expense_id,
            "expense_status": expense_status
        }
        self.expense_id = expense_id
        self.expense_status = expense_status


class OutOfOrderDecision(WorkflowError):
    """Strict sequential ordering is enabled and an earlier step is still pending"""

    code = "OUT_OF_ORDER_DECISION"
    status_code = 409

    def __init__(self, approval_id: int, blocking_sequence: int):
        super().__init__(
            f"Approval step {approval_id} cannot be decided before step {blocking_sequence}",
            {"approval_id": approval_id, "blocking_sequence": blocking_sequence}
        )


class ConversionUnavailable(WorkflowError):
    """Currency converter could not produce a rate"""

    code = "CONVERSION_UNAVAILABLE"
    status_code = 503

    def __init__(self, from_currency: str, to_currency: str, reason: str):
        super().__init__(
            f"Cannot convert {from_currency} to {to_currency}: {reason}",
            {"from_currency": from_currency, "to_currency": to_currency}
        )


class PersistenceFailure(WorkflowError):
    """A write failed and was rolled back"""

    code = "PERSISTENCE_FAILURE"
    status_code = 500

"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class PreconditionViolation(DomainException, ValueError):
    """Required input is missing, blank, negative or otherwise out of range"""

    pass


class PlanConflictError(DomainException):
    """A repayment plan for the period is already registered on the contract"""

    pass


class MoneyUnderflowError(DomainException, ArithmeticError):
    """Subtraction would produce a negative amount.

    Settlement arithmetic caps every subtrahend, so this indicates a broken
    invariant upstream rather than a recoverable condition.
    """

    pass


class ContractNotFoundError(DomainException):
    """No debt contract matches the requested identity"""

    pass


class ContractAlreadyExistsError(DomainException):
    """A debt contract is already open for the case entrustment"""

    pass

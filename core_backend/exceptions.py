"""
Error taxonomy shared by the order, payment and printing services.

Each error carries a status_code so whatever outer surface wraps the
services can map it without knowing the individual classes.
"""


class POSError(Exception):
    """Base exception for POS business operations."""

    status_code = 500

    def __init__(self, message=None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class ValidationError(POSError):
    """Invalid or missing input."""

    status_code = 400


class NotFoundError(POSError):
    """Referenced record does not exist."""

    status_code = 404

    def __init__(self, entity, identifier, message=None):
        self.entity = entity
        self.identifier = identifier
        if message is None:
            message = f"{entity} with id {identifier} not found"
        super().__init__(message)


class ConflictError(POSError):
    """Operation rejected because of the current state."""

    status_code = 409


class InvalidStatusTransition(ConflictError):
    """Raised when an order status change is not in the transition table."""

    def __init__(self, current_status, new_status, message=None):
        self.current_status = current_status
        self.new_status = new_status
        if message is None:
            message = f"Cannot transition order from {current_status} to {new_status}."
        super().__init__(message)


class DuplicatePaymentError(ConflictError):
    """Raised when an order already has a payment."""

    def __init__(self, order_id, message=None):
        self.order_id = order_id
        if message is None:
            message = f"Order {order_id} has already been paid"
        super().__init__(message)


class DataIntegrityError(POSError):
    """A unit of work failed to commit and was rolled back."""

    status_code = 500


class PrinterError(POSError):
    """Printer unreachable or rejected the job."""

    status_code = 503

    def __init__(self, message=None, retryable=True):
        self.retryable = retryable
        super().__init__(message)


class PrinterNotConfiguredError(PrinterError):
    """No usable printer configuration for the job."""

    def __init__(self, message=None):
        super().__init__(message, retryable=False)

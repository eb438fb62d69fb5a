class PipelineError(Exception):
    """Base class for payment pipeline errors."""


class WebhookValidationError(PipelineError):
    """Malformed payload, missing reference or bad signature. Nothing is written."""


class PaymentNotFoundError(PipelineError):
    """The gateway referenced a payment this system never created."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Payment not found for reference {reference}")


class ReconciliationConflict(PipelineError):
    """Another delivery already won the atomic write for this key."""


class InvalidTransitionError(PipelineError):
    def __init__(self, entity: str, from_state: str, to_state: str):
        self.entity = entity
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Illegal {entity} transition: {from_state} -> {to_state}")


class InvalidWithdrawalError(PipelineError):
    """Withdrawal request rejected by wallet rules."""

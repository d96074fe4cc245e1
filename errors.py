class ValidationError(ValueError):
    """Malformed input to a pure function. Never silently corrected."""


class UnsupportedFrequency(ValidationError):
    def __init__(self, frequency: object) -> None:
        super().__init__(f"Unsupported frequency: {frequency}")
        self.frequency = frequency


class InvalidRange(ValidationError):
    pass


class ReconciliationError(ValueError):
    code = "RECONCILIATION_ERROR"


class SelfLinkError(ReconciliationError):
    code = "SELF_LINK"


class AlreadyReconciledError(ReconciliationError):
    code = "ALREADY_RECONCILED"


class SameKindLinkError(ReconciliationError):
    code = "SAME_KIND_LINK"


class NotReconciledError(ReconciliationError):
    code = "NOT_RECONCILED"


class StoreError(RuntimeError):
    """The record store failed to read or persist a record."""

class RecordNotFound(LookupError):
    """Raised when a patient, bill, request or catalog entry does not exist."""

    def __init__(self, kind, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found")


class InsufficientStock(ValueError):
    """Raised when a stock decrement would drop below zero."""

    def __init__(self, item_name, available, requested):
        self.item_name = item_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {item_name}: {available} available, {requested} requested"
        )

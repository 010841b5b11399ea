"""Validation errors raised by the accounting core."""


class InvalidRange(ValueError):
    """A date range whose start falls after its end."""

    def __init__(self, start, end):
        super().__init__(f"Range start {start} is after range end {end}")
        self.start = start
        self.end = end


class InvalidConfiguration(ValueError):
    """A formula or work-schedule setting violates one of its invariants."""

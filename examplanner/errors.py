class SchedulerError(Exception):
    """Base class for all engine errors that are reported back to the caller."""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidInputData(SchedulerError):
    """Malformed or missing required fields in registrations, halls or allowed slots."""


class InvalidScheduleParams(SchedulerError):
    """Request parameters that make scheduling impossible before any trial runs."""


class InvalidDateRange(InvalidScheduleParams):
    """Exam end date precedes the start date."""
    def __init__(self, start, end):
        super().__init__(
            f"exam end date {end} precedes start date {start}",
            details={"start": str(start), "end": str(end)},
        )


class InvalidSlotConfig(InvalidScheduleParams):
    """Non-positive slot counts or durations, or a slot-time list that does not fit."""

"""
Exception types raised by the remapping engine.
"""


class ConstructionError(ValueError):
    """Raised when stage descriptors or raw triples cannot form a pipeline."""


class AlmanacFormatError(ValueError):
    """Raised when puzzle text has no seeds line or malformed sections."""


class SearchTimeout(TimeoutError):
    """Raised when a range search exceeds its deadline."""

    def __init__(self, deadline, processed, total):
        self.deadline = deadline
        self.processed = processed
        self.total = total
        super().__init__(
            f"Search exceeded deadline of {deadline}s "
            f"({processed}/{total} values processed)"
        )


class StrategyMismatchError(RuntimeError):
    """Raised when the split and brute-force strategies disagree."""

    def __init__(self, split_result, brute_result):
        self.split_result = split_result
        self.brute_result = brute_result
        super().__init__(
            f"Strategies disagree: split={split_result}, brute={brute_result}"
        )

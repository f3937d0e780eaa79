"""
Search configuration.

Defaults can be overridden through ALMANAC_REMAP_* environment variables;
command-line flags override both.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Optional

STRATEGIES = ("split", "brute", "verify")
EXECUTORS = ("process", "thread")

_ENV_PREFIX = "ALMANAC_REMAP_"


@dataclass(frozen=True)
class SearchConfig:
    """
    Tuning knobs for minimum_terminal_value().

    Attributes:
        strategy: "split" (interval splitting), "brute" (parallel per-value
                  scan) or "verify" (both, results must agree)
        workers: Pool size for the brute-force scan (None: one per CPU)
        chunk_size: Values per brute-force work unit
        executor: "process" or "thread" pool
        deadline: Seconds before the brute-force scan gives up (None: no limit)
        progress_every: Log progress after this many completed chunks
    """

    strategy: str = "split"
    workers: Optional[int] = None
    chunk_size: int = 1_000_000
    executor: str = "process"
    deadline: Optional[float] = None
    progress_every: int = 64

    def __post_init__(self):
        if self.strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy {self.strategy!r}, expected one of {STRATEGIES}")
        if self.executor not in EXECUTORS:
            raise ValueError(f"Unknown executor {self.executor!r}, expected one of {EXECUTORS}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        if self.deadline is not None and self.deadline <= 0:
            raise ValueError(f"deadline must be positive, got {self.deadline}")
        if self.progress_every < 1:
            raise ValueError(f"progress_every must be at least 1, got {self.progress_every}")

    @property
    def pool_size(self) -> int:
        return self.workers or os.cpu_count() or 1

    @classmethod
    def from_env(cls, environ=None) -> "SearchConfig":
        environ = os.environ if environ is None else environ
        converters = {
            "strategy": str,
            "workers": int,
            "chunk_size": int,
            "executor": str,
            "deadline": float,
            "progress_every": int,
        }

        values = {}
        for f in fields(cls):
            raw = environ.get(_ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            try:
                values[f.name] = converters[f.name](raw.strip())
            except ValueError:
                raise ValueError(f"Invalid {_ENV_PREFIX}{f.name.upper()}: {raw!r}") from None
        return cls(**values)

    def override(self, **changes) -> "SearchConfig":
        """Copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

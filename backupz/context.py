"""Per-invocation context handed to every core operation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backupz.executor import Executor
    from backupz.models import Config


@dataclass(frozen=True)
class RunContext:
    config: "Config"
    executor: "Executor"
    logger: logging.Logger
    verbosity: int = 0
    dry_run: bool = False

    @property
    def dataset(self) -> str:
        return self.config.dataset

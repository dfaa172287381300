"""Progress sinks for stage transitions."""

import logging
from typing import Callable, List

from ..models.migration import StageProgress

logger = logging.getLogger(__name__)

ProgressSink = Callable[[StageProgress], None]


class ProgressReporter:
    """Default sink: writes each transition to the log."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def __call__(self, progress: StageProgress) -> None:
        if progress.units_total:
            percent = int(progress.units_done * 100 / progress.units_total)
        else:
            percent = 100
        self.log.info(
            f"[{progress.stage_name}] {progress.units_done}/{progress.units_total} ({percent}%)"
        )


class ProgressRecorder:
    """Sink that keeps every event, for callers that report progress later."""

    def __init__(self):
        self.events: List[StageProgress] = []

    def __call__(self, progress: StageProgress) -> None:
        self.events.append(progress)

    @property
    def stage_names(self) -> List[str]:
        names = []
        for event in self.events:
            if not names or names[-1] != event.stage_name:
                names.append(event.stage_name)
        return names

"""Data records shared across the synchronization pipeline."""
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class NeutralFile:
    """A source-language resource file discovered under the root path."""
    path: str
    relative_path: str
    file_name: str
    directory: str

    @classmethod
    def from_path(cls, path: str, root_path: str) -> "NeutralFile":
        absolute_path = os.path.abspath(path)
        relative_path = os.path.relpath(absolute_path, os.path.abspath(root_path))
        return cls(
            path=absolute_path,
            relative_path=relative_path.replace(os.sep, '/').replace('\\', '/'),
            file_name=os.path.basename(absolute_path),
            directory=os.path.dirname(absolute_path),
        )

    def base_name(self, extension: str) -> str:
        """File name with the resource extension removed."""
        if self.file_name.endswith(extension):
            return self.file_name[:-len(extension)]
        return os.path.splitext(self.file_name)[0]


class WriteAction(Enum):
    """Outcome of comparing new content against a destination file."""
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class JobState(Enum):
    PENDING = "pending"
    FINISHED = "finished"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class JobResult:
    """Observed state of a remote job, with its result payload or failure message."""
    state: JobState
    message: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Failure:
    context: str
    message: str


@dataclass
class RunStats:
    """Counters and failures accumulated over a single run."""
    neutral_files_found: int = 0
    files_uploaded: int = 0
    locales_processed: int = 0
    files_created: int = 0
    files_updated: int = 0
    failures: List[Failure] = field(default_factory=list)

    def record_failure(self, context: str, message: str) -> None:
        self.failures.append(Failure(context=context, message=message))

    def record_write(self, action: WriteAction) -> None:
        if action is WriteAction.CREATE:
            self.files_created += 1
        elif action is WriteAction.UPDATE:
            self.files_updated += 1

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0

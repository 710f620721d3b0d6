"""
Thread dumps for diagnosing threads that refuse to go away.
"""

from __future__ import annotations

import sys
import threading
import time
import traceback
from dataclasses import dataclass, field


@dataclass
class ThreadInfo:
    """State of one live thread."""

    name: str
    ident: int | None
    daemon: bool
    alive: bool
    stack: list[str] = field(default_factory=list)

    def format(self) -> str:
        header = f'"{self.name}" ident={self.ident}{" daemon" if self.daemon else ""}'
        if not self.stack:
            return header
        return header + "\n" + "".join(self.stack).rstrip()


@dataclass
class ThreadDump:
    """Snapshot of every live thread of the process.

    Example:
        dump = ThreadDump.capture()
        logger.info(f"ThreadDump: {dump}")
    """

    threads: list[ThreadInfo] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def capture(cls, with_stacks: bool = True) -> "ThreadDump":
        frames = sys._current_frames() if with_stacks else {}
        threads = []

        for thread in threading.enumerate():
            frame = frames.get(thread.ident)
            threads.append(ThreadInfo(
                name=thread.name,
                ident=thread.ident,
                daemon=thread.daemon,
                alive=thread.is_alive(),
                stack=traceback.format_stack(frame) if frame is not None else [],
            ))

        return cls(threads=threads)

    def names(self) -> list[str]:
        return [t.name for t in self.threads]

    def __str__(self) -> str:
        return "\n\n".join(t.format() for t in self.threads)

#!/usr/bin/env python3
"""
LogTailer - incremental reader for an append-only log file.

Tracks how many bytes of the file were already delivered. Each call to
read_new_lines() returns the complete lines appended since the last call.
Truncation (file shrank below the offset) and rotation (inode changed)
restart reading at byte 0.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional


logger = logging.getLogger('ufw_reporter.tailer')


class LogFileUnavailable(Exception):
    """The monitored log file is missing or unreadable."""


class TailerState(Enum):
    IDLE = "idle"
    READING = "reading"
    TRUNCATED = "truncated"


@dataclass
class TailState:
    """Bytes already delivered, and the file identity they belong to."""
    offset: int = 0
    size: int = 0
    inode: Optional[int] = None


class LogTailer:
    """
    Usage:
        tailer = LogTailer('/var/log/ufw.log')
        tailer.start()              # skip existing content
        for line in tailer.read_new_lines():
            ...
    """

    def __init__(self, path, encoding: str = 'utf-8'):
        self.path = Path(path)
        self.encoding = encoding
        self.position = TailState()
        self.state = TailerState.IDLE
        self.truncations = 0
        self._partial = b''

    @property
    def offset(self) -> int:
        return self.position.offset

    def start(self) -> TailState:
        """
        Position the tailer at the current end of the file.

        Raises:
            LogFileUnavailable: file missing, not a regular file, or unreadable
        """
        try:
            stat = os.stat(self.path)
            if not self.path.is_file():
                raise LogFileUnavailable(f"Log file {self.path} is not a regular file")
            with open(self.path, 'rb'):
                pass
        except OSError as e:
            raise LogFileUnavailable(f"Log file {self.path} is not readable: {e}") from e

        self.position = TailState(offset=stat.st_size, size=stat.st_size, inode=stat.st_ino)
        self.state = TailerState.IDLE
        self._partial = b''
        logger.debug(f"Tailing {self.path} from offset {stat.st_size}")
        return self.position

    def _reset(self, reason: str):
        self.state = TailerState.TRUNCATED
        self.truncations += 1
        logger.info(f"The file has been {reason}, and the offset has been reset")
        self.position.offset = 0
        self._partial = b''

    def read_new_lines(self) -> List[str]:
        """
        Read everything appended since the last call.

        Returns:
            Non-empty complete lines, in file order. An unterminated trailing
            fragment is kept and completed by a later call.

        Raises:
            LogFileUnavailable: the file exists but can no longer be read
        """
        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            # Mid-rotation; the next notification picks up the new file
            logger.debug(f"{self.path} vanished, waiting for it to reappear")
            return []
        except PermissionError as e:
            raise LogFileUnavailable(f"Log file {self.path} is not readable: {e}") from e

        size = stat.st_size
        reason = None
        if self.position.inode is not None and stat.st_ino != self.position.inode:
            reason = "rotated"
        elif size < self.position.offset:
            reason = "truncated"
        start = 0 if reason else self.position.offset

        chunk = b''
        if size > start:
            self.state = TailerState.READING
            try:
                with open(self.path, 'rb') as f:
                    f.seek(start)
                    chunk = f.read(size - start)
            except FileNotFoundError:
                # Moved away between stat and open; position stays as it was
                self.state = TailerState.IDLE
                logger.debug(f"{self.path} vanished, waiting for it to reappear")
                return []
            except PermissionError as e:
                self.state = TailerState.IDLE
                raise LogFileUnavailable(f"Log file {self.path} is not readable: {e}") from e

        if reason:
            self._reset(reason)
        # Only advance past what was actually read
        self.position.offset = start + len(chunk)
        self.position.size = size
        self.position.inode = stat.st_ino
        self.state = TailerState.IDLE

        if not chunk:
            return []

        data = self._partial + chunk
        pieces = data.split(b'\n')
        self._partial = pieces.pop()

        lines = []
        for piece in pieces:
            line = piece.decode(self.encoding, errors='replace').strip()
            if line:
                lines.append(line)
        return lines

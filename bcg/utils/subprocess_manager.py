#!/usr/bin/env python3
"""
Subprocess handling for external tools (bgpq4)

Every child is reaped before control returns to the caller: a child that
outlives its timeout gets SIGTERM, then SIGKILL.
"""

import logging
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ProcessState(Enum):
    """How a managed child finished"""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class ProcessResult:
    """Captured output of a managed child"""

    returncode: int
    stdout: str
    stderr: str
    state: ProcessState
    execution_time: float
    command: List[str]


class ManagedProcess:
    """
    Context manager owning one child process

    Usage:
        with ManagedProcess(["bgpq4", "-b", "-4", "AS-EXAMPLE"], timeout=60) as child:
            result = child.wait_for_completion()
    """

    def __init__(self, command: List[str], timeout: Optional[int] = None,
                 env: Optional[Dict[str, str]] = None):
        self.command = command
        self.timeout = timeout
        self.env = env
        self.process: Optional[subprocess.Popen] = None
        self.started: Optional[float] = None

    def __enter__(self) -> "ManagedProcess":
        self.started = time.monotonic()
        self.process = subprocess.Popen(
            self.command,
            env=self.env,
            text=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        logger.debug(f"Started pid {self.process.pid}: {' '.join(self.command)}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.process and self.process.poll() is None:
            self.terminate()
        return False

    def wait_for_completion(self) -> ProcessResult:
        if self.process is None:
            raise RuntimeError("ManagedProcess must be entered before waiting on it")

        try:
            stdout, stderr = self.process.communicate(timeout=self.timeout)
            state = ProcessState.COMPLETED if self.process.returncode == 0 else ProcessState.FAILED
        except subprocess.TimeoutExpired:
            logger.warning(f"pid {self.process.pid} exceeded {self.timeout}s, terminating")
            stdout, stderr = self.terminate()
            state = ProcessState.TIMEOUT

        return ProcessResult(
            returncode=self.process.returncode if self.process.returncode is not None else -1,
            stdout=stdout or "",
            stderr=stderr or "",
            state=state,
            execution_time=time.monotonic() - self.started,
            command=self.command,
        )

    def terminate(self, grace: int = 5):
        """Stop the child; returns whatever (stdout, stderr) it left behind"""
        self.process.terminate()
        try:
            return self.process.communicate(timeout=grace)
        except subprocess.TimeoutExpired:
            logger.warning(f"pid {self.process.pid} ignored SIGTERM, killing")
            self.process.kill()
            return self.process.communicate()


def run_with_resource_management(command: List[str], timeout: Optional[int] = None,
                                 **kwargs) -> ProcessResult:
    """
    Run a command to completion under ManagedProcess

    Raises:
        OSError: If the executable cannot be started
    """
    with ManagedProcess(command, timeout=timeout, **kwargs) as child:
        return child.wait_for_completion()

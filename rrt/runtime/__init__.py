"""rrt runtime layer.

Detects the hosting runtime and exposes capability-uniform process
execution and file watching on top of it.

Key classes:
    RuntimeKind     - Closed set of hosting environments
    ProcessRunner   - Command execution through the runtime's own launchers
    FileWatcher     - Coalesced filesystem change notification
"""

from .detector import (
    Capabilities,
    RuntimeInfo,
    RuntimeKind,
    capabilities,
    detect,
    info,
    print_info,
)
from .process import COMMANDS, ProcessOutput, ProcessRunner, RuntimeCommands
from .watcher import FileWatcher

__all__ = [
    # Detection
    "RuntimeKind",
    "RuntimeInfo",
    "Capabilities",
    "detect",
    "capabilities",
    "info",
    "print_info",
    # Processes
    "ProcessRunner",
    "ProcessOutput",
    "RuntimeCommands",
    "COMMANDS",
    # Watching
    "FileWatcher",
]

"""
CommandRegistry - Explicit command registration pattern

Bounded Context: Command registration and validation
Responsibilities:
  - Register commands with handlers
  - Validate command existence before execution
  - Provide introspection (available_commands, get_help)

Threading: Thread-safe (uses lock for write operations)
Pattern: Registry with explicit registration
"""

from typing import Dict, Callable, Optional, Set
import threading


class CommandNotAvailableError(Exception):
    """Raised when attempting to execute an unregistered command"""
    pass


class CommandRegistry:
    """
    Registry for control commands with explicit registration.

    Key Features:
      - Fail-fast: Invalid commands rejected immediately
      - Introspection: Can query available commands at runtime
      - Self-Documenting: Each command has description

    Example:
        registry = CommandRegistry()
        registry.register('disable_tracking', handler, "Stop publishing events")

        try:
            registry.execute('disable_tracking', {'command': 'disable_tracking'})
        except CommandNotAvailableError as e:
            print(f"Command not available: {e}")
    """

    def __init__(self):
        self._commands: Dict[str, Callable] = {}
        self._descriptions: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, command: str, handler: Callable, description: str) -> None:
        """
        Register a command with its handler function.

        Args:
            command: Command name (lowercase, no spaces)
            handler: Callable taking the full command payload dict
            description: Human-readable description for help text

        Raises:
            ValueError: If command already registered (double registration)
        """
        with self._lock:
            if command in self._commands:
                raise ValueError(f"Command '{command}' already registered")

            self._commands[command] = handler
            self._descriptions[command] = description

    def execute(self, command: str, command_data: Optional[dict] = None) -> None:
        """
        Execute a registered command.

        Args:
            command: Command name to execute
            command_data: Full JSON payload (handlers receive {} when absent)

        Raises:
            CommandNotAvailableError: If command not registered
        """
        with self._lock:
            handler = self._commands.get(command)

        if handler is None:
            raise CommandNotAvailableError(
                f"Command '{command}' not available. "
                f"Available commands: {', '.join(sorted(self.available_commands))}"
            )

        handler(command_data if command_data is not None else {})

    def is_available(self, command: str) -> bool:
        with self._lock:
            return command in self._commands

    @property
    def available_commands(self) -> Set[str]:
        """Snapshot of all registered command names."""
        with self._lock:
            return set(self._commands.keys())

    def get_help(self) -> Dict[str, str]:
        """Snapshot of command names to descriptions."""
        with self._lock:
            return dict(self._descriptions)

    def count(self) -> int:
        with self._lock:
            return len(self._commands)

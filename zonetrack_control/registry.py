"""
CommandRegistry - Explicit command registration pattern

Bounded Context: Command registration and validation
Responsibilities:
  - Register commands with handlers
  - Validate command existence and arguments before execution
  - Provide introspection (available_commands, get_help)

Threading: Thread-safe (uses lock for write operations)
"""

from typing import Any, Callable, Dict, Optional, Set, Tuple, Union
import threading


class CommandNotAvailableError(Exception):
    """Raised when attempting to execute an unregistered command"""


class CommandArgumentError(ValueError):
    """Raised by handlers when a command payload is missing or has a bad argument"""


def require_arg(
    command_data: Dict[str, Any],
    name: str,
    kind: Union[type, Tuple[type, ...]] = str,
) -> Any:
    """
    Fetch a required argument from a command payload.

    Raises:
        CommandArgumentError: If missing, empty, or of the wrong type
    """
    kinds = kind if isinstance(kind, tuple) else (kind,)
    expected = "/".join(k.__name__ for k in kinds)

    value = command_data.get(name)
    if value is None or value == "":
        raise CommandArgumentError(f"Missing required argument '{name}'")
    if isinstance(value, bool) and bool not in kinds:
        raise CommandArgumentError(f"Argument '{name}' must be {expected}, got bool")
    if not isinstance(value, kinds):
        raise CommandArgumentError(
            f"Argument '{name}' must be {expected}, got {type(value).__name__}"
        )
    return value


def optional_int(command_data: Dict[str, Any], name: str, default: int) -> int:
    """Optional positive integer argument."""
    if command_data.get(name) is None:
        return default
    value = require_arg(command_data, name, int)
    if value < 0:
        raise CommandArgumentError(f"Argument '{name}' must be >= 0, got {value}")
    return value


class CommandRegistry:
    """
    Registry for MQTT commands with explicit registration.

    Every handler receives the full command payload (dict).

    Example:
        registry = CommandRegistry()
        registry.register('refresh_zones', service.handle_refresh, "Reload zones now")

        try:
            registry.execute('refresh_zones', {"command": "refresh_zones"})
        except CommandNotAvailableError as e:
            print(f"Command not available: {e}")
    """

    def __init__(self):
        self._commands: Dict[str, Callable[[Dict[str, Any]], Any]] = {}
        self._descriptions: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, command: str, handler: Callable[[Dict[str, Any]], Any], description: str) -> None:
        """
        Register a command with its handler function.

        Raises:
            ValueError: If command already registered (double registration)
        """
        command = command.lower()
        with self._lock:
            if command in self._commands:
                raise ValueError(f"Command '{command}' already registered")

            self._commands[command] = handler
            self._descriptions[command] = description

    def execute(self, command: str, command_data: Optional[Dict[str, Any]] = None) -> Any:
        """
        Execute a registered command.

        Returns:
            Whatever the handler returns

        Raises:
            CommandNotAvailableError: If command not registered
            CommandArgumentError: If the handler rejects its arguments
        """
        command = command.lower()
        handler = self._commands.get(command)
        if handler is None:
            raise CommandNotAvailableError(
                f"Command '{command}' not available. "
                f"Available commands: {', '.join(sorted(self.available_commands))}"
            )

        return handler(command_data if command_data is not None else {"command": command})

    def is_available(self, command: str) -> bool:
        return command.lower() in self._commands

    @property
    def available_commands(self) -> Set[str]:
        """Snapshot of registered command names."""
        return set(self._commands.keys())

    def get_help(self) -> Dict[str, str]:
        """Commands with their descriptions (snapshot)."""
        return dict(self._descriptions)

    def count(self) -> int:
        return len(self._commands)

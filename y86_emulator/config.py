"""
Y86-64 Emulator - Configuration

Module-level defaults, the machine / server config records, and the named
machine profiles selectable from the command line.

    cfg = machine_profile("stack", capacity=4096)
    state = MachineState(cfg)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, Optional


# =============================================================================
#  MACHINE DEFAULTS
# =============================================================================
DEFAULT_MEM_CAPACITY = 1024      # bytes of backing store per session
DEFAULT_START_ADDR = 0x0000      # first valid address of the window
DEFAULT_STACK_POINTER = 0        # r4 at session start

# =============================================================================
#  SERVER DEFAULTS
# =============================================================================
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_BACKLOG = 5
DEFAULT_RECV_SIZE = 1024
DEFAULT_MAX_LINE = 4096         # longest accepted request line, bytes


class ConfigError(Exception):
    """Raised on an impossible machine layout or an unknown profile."""


@dataclass(frozen=True)
class MachineConfig:
    """Memory geometry and reset values for one machine.

    With stack_at_top set, stack_pointer is ignored and r4 starts at
    start_addr + valid_mem, the first address past the window.
    """
    capacity: int = DEFAULT_MEM_CAPACITY
    start_addr: int = DEFAULT_START_ADDR
    valid_mem: Optional[int] = None     # None -> whole capacity
    stack_pointer: int = DEFAULT_STACK_POINTER
    stack_at_top: bool = False

    def __post_init__(self):
        if self.valid_mem is None:
            object.__setattr__(self, 'valid_mem', self.capacity)
        if self.capacity <= 0:
            raise ConfigError(f"capacity must be positive, got {self.capacity}")
        if self.start_addr < 0 or self.start_addr > (1 << 64) - 1:
            raise ConfigError(f"start_addr out of 64-bit range: {self.start_addr:#x}")
        if not 0 <= self.valid_mem <= self.capacity:
            raise ConfigError(
                f"valid_mem {self.valid_mem} must be between 0 and capacity {self.capacity}")
        if self.stack_at_top:
            object.__setattr__(self, 'stack_pointer', self.start_addr + self.valid_mem)
        if self.stack_pointer < 0 or self.stack_pointer > (1 << 64) - 1:
            raise ConfigError(f"stack_pointer out of 64-bit range: {self.stack_pointer:#x}")


@dataclass(frozen=True)
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    backlog: int = DEFAULT_BACKLOG
    recv_size: int = DEFAULT_RECV_SIZE
    max_line: int = DEFAULT_MAX_LINE


DEFAULT_MACHINE = MachineConfig()

# Named machine layouts. "stack" and "large" start r4 at the top of the
# window so pushq/call work without an explicit irmovq first.
MACHINE_PROFILES: Dict[str, MachineConfig] = {
    "default": DEFAULT_MACHINE,
    "stack": MachineConfig(stack_at_top=True),
    "small": MachineConfig(capacity=256),
    "large": MachineConfig(capacity=0x10000, stack_at_top=True),
}


def machine_profile(name: str = "default", **overrides) -> MachineConfig:
    """Look up a profile and apply keyword overrides (None values are ignored).

    Changing capacity without giving valid_mem resizes the window to match.
    An explicit stack_pointer replaces a profile's top-of-window stack.
    """
    try:
        base = MACHINE_PROFILES[name]
    except KeyError:
        raise ConfigError(
            f"unknown profile '{name}' (choose from: {', '.join(MACHINE_PROFILES)})") from None
    changes = {k: v for k, v in overrides.items() if v is not None}
    if 'capacity' in changes and 'valid_mem' not in changes:
        changes['valid_mem'] = changes['capacity']
    if 'stack_pointer' in changes:
        changes.setdefault('stack_at_top', False)
    return replace(base, **changes) if changes else base


def parse_int_arg(value: str) -> int:
    """Parse an integer argument that may be hex (0x...) or decimal."""
    value = value.strip()
    if value.startswith("0x") or value.startswith("0X"):
        return int(value, 16)
    return int(value)

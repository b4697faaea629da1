"""
Y86-64 Emulator - Bounded Memory Window

A fixed-capacity byte buffer exposed through an address window:

    [start_addr, start_addr + valid_mem)

Address A maps to buffer offset (A - start_addr). Quads (8 bytes) are
stored little-endian. A quad access must sit entirely inside the window;
an access that straddles either edge is rejected, never clamped. There is
no alignment requirement.

read_quad/write_quad report failure through their return value (None /
False) so the executor can apply each opcode's own failure policy.
"""

from typing import Optional

QUAD = 8


class Memory:
    """Byte-addressable memory with a single valid window."""

    def __init__(self, capacity: int = 1024, start_addr: int = 0,
                 valid_mem: Optional[int] = None):
        if valid_mem is None:
            valid_mem = capacity
        if capacity <= 0:
            raise ValueError(f"memory capacity must be positive, got {capacity}")
        if not 0 <= valid_mem <= capacity:
            raise ValueError(
                f"valid_mem {valid_mem} does not fit in capacity {capacity}")
        self._mem = bytearray(capacity)
        self.start_addr = start_addr
        self.valid_mem = valid_mem

    @property
    def capacity(self) -> int:
        return len(self._mem)

    @property
    def end_addr(self) -> int:
        """First address past the window."""
        return self.start_addr + self.valid_mem

    def contains(self, address: int, length: int = QUAD) -> bool:
        """True if [address, address+length) lies fully inside the window."""
        return address >= self.start_addr and address + length <= self.end_addr

    # --- Quad access ---

    def read_quad(self, address: int) -> Optional[int]:
        """Read an unsigned 64-bit value, or None if out of bounds."""
        if not self.contains(address):
            return None
        offset = address - self.start_addr
        return int.from_bytes(self._mem[offset:offset + QUAD], 'little')

    def write_quad(self, address: int, value: int) -> bool:
        """Write an unsigned 64-bit value. Returns False if out of bounds."""
        if not self.contains(address):
            return False
        offset = address - self.start_addr
        self._mem[offset:offset + QUAD] = (value & ((1 << 64) - 1)).to_bytes(QUAD, 'little')
        return True

    # --- Snapshots ---

    def snapshot(self) -> bytes:
        """Copy of the whole buffer, for before/after comparisons."""
        return bytes(self._mem)

    # --- Hex dump ---

    def hexdump(self, start: Optional[int] = None, length: int = 64) -> str:
        """Hex dump of the window, 16 bytes per line, clipped to valid memory."""
        if start is None:
            start = self.start_addr
        lines = []
        first = max(start, self.start_addr)
        last = min(start + length, self.end_addr)
        for addr in range(first, last, 16):
            offset = addr - self.start_addr
            chunk = self._mem[offset:offset + min(16, last - addr)]
            hex_bytes = ' '.join(f'{b:02x}' for b in chunk)
            lines.append(f'{addr:016x}  {hex_bytes}')
        return '\n'.join(lines)

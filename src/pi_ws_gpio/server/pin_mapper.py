"""
Logical Pin Name to Hardware Pin Number Mapping.

Clients address pins by label (e.g. `GPIO17` or `BOARD11`); the driver
needs the BCM number. The lookup is a static table of the Raspberry Pi
40-pin header.
"""
from typing import Dict, Optional

# Physical header pin -> BCM GPIO number (power and ground pins are absent)
HEADER_TO_BCM: Dict[int, int] = {
    3: 2, 5: 3, 7: 4, 8: 14, 10: 15, 11: 17, 12: 18, 13: 27,
    15: 22, 16: 23, 18: 24, 19: 10, 21: 9, 22: 25, 23: 11, 24: 8,
    26: 7, 27: 0, 28: 1, 29: 5, 31: 6, 32: 12, 33: 13, 35: 19,
    36: 16, 37: 26, 38: 20, 40: 21,
}

PIN_TABLE: Dict[str, int] = {
    **{f"GPIO{bcm}": bcm for bcm in range(28)},
    **{f"BOARD{header}": bcm for header, bcm in HEADER_TO_BCM.items()},
}


class PinNameMapper:
    table: Dict[str, int]

    """
    Resolves pin labels against a static table. Has no side effects.
    """
    def __init__(self, extra: Optional[Dict[str, int]] = None):
        self.table = {**PIN_TABLE, **(extra or {})}

    def pin_number(self, name: str) -> Optional[int]:
        """Returns the hardware pin number for `name`, or None if it is unknown."""
        return self.table.get(name)

"""
Port allocator — find an unused local TCP port.

Ports are probed by trying to bind them on the loopback interface.
A port that cannot be bound is considered in use.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
PORT_CEILING = 65000

# Returned when the whole range is taken. Never a valid port.
NO_PORT: int | None = None


def port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    """True if ``port`` cannot be bound on ``host``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return True
    return False


def find_available_port(
    preferred: int = DEFAULT_PORT,
    ceiling: int = PORT_CEILING,
    probe: Callable[[int], bool] = port_in_use,
) -> int | None:
    """First port in ``preferred..ceiling`` the probe reports free.

    Returns:
        The port, or ``NO_PORT`` if every port in the range is taken.
        Callers must treat ``NO_PORT`` as a hard failure.
    """
    for port in range(max(preferred, 1), ceiling + 1):
        if not probe(port):
            logger.debug("Port %d is free", port)
            return port
    logger.warning("No free port in %d..%d", preferred, ceiling)
    return NO_PORT

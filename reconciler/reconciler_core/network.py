"""
NetworkProbe — is outbound connectivity usable right now?

Socket-level check (network-interface agnostic): resolve the probe host,
then open a TCP connection to it. Works on WiFi, LAN, or any adapter.
"""

import socket

from .constants import PROBE_HOST, PROBE_PORT, PROBE_TIMEOUT_SEC


class NetworkProbe:
    """Reachability + name resolution against one well-known host."""

    def __init__(self, host=PROBE_HOST, port=PROBE_PORT, run_log=None,
                 timeout=PROBE_TIMEOUT_SEC):
        self.host = host
        self.port = port
        self._timeout = timeout
        self._run_log = run_log

    def _note(self, msg, *args):
        if self._run_log is not None:
            self._run_log.warning(msg, *args)

    def resolves(self):
        try:
            return bool(socket.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM))
        except (socket.gaierror, OSError) as e:
            self._note("Name resolution failed for %s: %s", self.host, e)
            return False

    def reachable(self):
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self._timeout)
            sock.close()
            return True
        except (socket.timeout, OSError) as e:
            self._note("Cannot reach %s:%d: %s", self.host, self.port, e)
            return False

    def is_online(self):
        return self.resolves() and self.reachable()

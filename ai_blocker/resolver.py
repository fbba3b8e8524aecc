# ai_blocker/resolver.py

from __future__ import annotations

import socket
from typing import List, Protocol


class ResolutionError(Exception):
    """DNS lookup for a single domain failed."""

    def __init__(self, domain: str, reason: str):
        super().__init__(f"Could not resolve {domain}: {reason}")
        self.domain = domain
        self.reason = reason


class Resolver(Protocol):
    def resolve(self, domain: str) -> List[str]:
        """Return the A/AAAA addresses for domain, or raise ResolutionError."""
        ...


def unique_addresses(addresses: List[str]) -> List[str]:
    """Drop repeated addresses, keeping first-seen order."""
    ips: List[str] = []
    for ip in addresses:
        if ip not in ips:
            ips.append(ip)
    return ips


class SocketResolver:
    """
    Resolve through the OS resolver (socket.getaddrinfo).

    getaddrinfo reports one entry per socket type/protocol, so the same
    address usually comes back several times; results are de-duplicated.
    """

    def resolve(self, domain: str) -> List[str]:
        try:
            infos = socket.getaddrinfo(domain, None)
        except socket.gaierror as e:
            raise ResolutionError(domain, e.strerror or str(e)) from e
        except (OSError, UnicodeError) as e:
            raise ResolutionError(domain, str(e)) from e

        ips: List[str] = []
        for family, _type, _proto, _canon, sockaddr in infos:
            if family not in (socket.AF_INET, socket.AF_INET6):
                continue
            ips.append(sockaddr[0])
        return unique_addresses(ips)

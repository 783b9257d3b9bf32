"""IP address reputation scoring.

The geolocation detector only needs a ``risk_score`` and supporting
details for an IP address. Where those come from is a pluggable
strategy: ``HeuristicIpReputation`` combines threat-intel lists supplied
by the caller, ``StaticIpReputation`` serves scores that were resolved
ahead of time, and any object implementing ``IpReputationProvider`` (for
example a wrapper around a commercial threat-intel lookup whose results
were fetched before evaluation) can replace them.
"""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from fraud_anomaly_engine.geo.distance import InvalidInputError

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network

# Heuristic weights
VPN_WEIGHT = 25.0
PROXY_WEIGHT = 30.0
TOR_WEIGHT = 40.0
PROVIDER_RISK_FLOOR = 50.0
PROVIDER_RISK_FACTOR = 0.5
ABUSE_REPORT_MIN = 3
ABUSE_REPORT_WEIGHT = 10.0
ABUSE_REPORT_MAX = 40.0


def parse_ip(ip: str) -> IPAddress:
    """Parse an IP address string.

    Raises:
        InvalidInputError: If the string is not a valid IPv4/IPv6 address.
    """
    try:
        return ipaddress.ip_address(ip.strip())
    except (ValueError, AttributeError) as e:
        raise InvalidInputError(f"Invalid IP address: {ip!r}") from e


@dataclass(frozen=True)
class IpReputation:
    """Reputation assessment for one IP address.

    Attributes:
        ip: The assessed address.
        risk_score: Risk from 0 (clean) to 100.
        flags: Short labels for each heuristic that fired.
        details: Provider-specific evidence.
    """

    ip: str
    risk_score: float
    flags: tuple[str, ...] = ()
    details: Mapping[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "ip": self.ip,
            "risk_score": self.risk_score,
            "flags": list(self.flags),
            **dict(self.details),
        }


@runtime_checkable
class IpReputationProvider(Protocol):
    """Anything that can score an IP address without blocking I/O."""

    def assess_ip_reputation(self, ip: str) -> IpReputation:
        """Return the reputation of ``ip``."""
        ...


class HeuristicIpReputation:
    """Scores an IP against caller-supplied threat-intel lists.

    Scoring:
        +25 if inside a known VPN range
        +30 if inside a known open-proxy range
        +40 if a known Tor exit node
        +0.5 * provider score, when an upstream provider score exceeds 50
        +min(10 * reports, 40), when the IP has 3 or more abuse reports
        Clamped to 100.

    Example:
        ```python
        reputation = HeuristicIpReputation(
            vpn_networks=["203.0.113.0/24"],
            tor_exit_nodes=["198.51.100.7"],
            abuse_reports={"198.51.100.7": 4},
        )
        result = reputation.assess_ip_reputation("198.51.100.7")
        print(result.risk_score, result.flags)
        ```
    """

    def __init__(
        self,
        *,
        vpn_networks: Iterable[str] = (),
        proxy_networks: Iterable[str] = (),
        tor_exit_nodes: Iterable[str] = (),
        provider_scores: Mapping[str, float] | None = None,
        abuse_reports: Mapping[str, int] | None = None,
    ) -> None:
        """Initialize the heuristic provider.

        Args:
            vpn_networks: CIDR ranges belonging to VPN providers.
            proxy_networks: CIDR ranges of known open proxies.
            tor_exit_nodes: Addresses or ranges of Tor exit nodes.
            provider_scores: Upstream risk scores (0-100) keyed by IP.
            abuse_reports: Count of abuse reports keyed by IP.
        """
        self._vpn = _parse_networks(vpn_networks)
        self._proxy = _parse_networks(proxy_networks)
        self._tor = _parse_networks(tor_exit_nodes)
        self._provider_scores = {
            str(parse_ip(ip)): float(score) for ip, score in (provider_scores or {}).items()
        }
        self._abuse_reports = {
            str(parse_ip(ip)): int(count) for ip, count in (abuse_reports or {}).items()
        }

    def assess_ip_reputation(self, ip: str) -> IpReputation:
        """Score an IP address against the configured lists.

        Raises:
            InvalidInputError: If ``ip`` is not a valid address.
        """
        address = parse_ip(ip)
        key = str(address)
        flags: list[str] = []
        risk = 0.0

        is_vpn = _contains(self._vpn, address)
        is_proxy = _contains(self._proxy, address)
        is_tor = _contains(self._tor, address)

        if is_vpn:
            flags.append("vpn_detected")
            risk += VPN_WEIGHT
        if is_proxy:
            flags.append("proxy_detected")
            risk += PROXY_WEIGHT
        if is_tor:
            flags.append("tor_detected")
            risk += TOR_WEIGHT

        provider_risk = self._provider_scores.get(key, 0.0)
        if provider_risk > PROVIDER_RISK_FLOOR:
            flags.append("high_provider_risk")
            risk += provider_risk * PROVIDER_RISK_FACTOR

        reports = self._abuse_reports.get(key, 0)
        if reports >= ABUSE_REPORT_MIN:
            flags.append("abuse_reports")
            risk += min(reports * ABUSE_REPORT_WEIGHT, ABUSE_REPORT_MAX)

        risk = min(round(risk, 2), 100.0)

        if flags:
            logger.debug("IP %s scored %.1f: %s", key, risk, ", ".join(flags))

        return IpReputation(
            ip=key,
            risk_score=risk,
            flags=tuple(flags),
            details={
                "is_vpn": is_vpn,
                "is_proxy": is_proxy,
                "is_tor": is_tor,
                "is_private": address.is_private,
                "provider_risk_score": provider_risk,
                "abuse_reports": reports,
            },
        )


class StaticIpReputation:
    """Serves reputation scores that were resolved before evaluation."""

    def __init__(self, scores: Mapping[str, float], *, default_score: float = 0.0) -> None:
        self._scores = {str(parse_ip(ip)): float(score) for ip, score in scores.items()}
        self._default = default_score

    def assess_ip_reputation(self, ip: str) -> IpReputation:
        """Return the pre-resolved score for ``ip``, or the default."""
        key = str(parse_ip(ip))
        known = key in self._scores
        score = max(0.0, min(100.0, self._scores.get(key, self._default)))
        return IpReputation(
            ip=key,
            risk_score=score,
            details={"source": "static", "known": known},
        )


def _parse_networks(values: Iterable[str]) -> tuple[IPNetwork, ...]:
    """Parse CIDR ranges or single addresses into networks."""
    networks: list[IPNetwork] = []
    for value in values:
        try:
            networks.append(ipaddress.ip_network(value.strip(), strict=False))
        except ValueError as e:
            raise InvalidInputError(f"Invalid network: {value!r}") from e
    return tuple(networks)


def _contains(networks: tuple[IPNetwork, ...], address: IPAddress) -> bool:
    """Return True if any network contains the address."""
    return any(address.version == net.version and address in net for net in networks)

"""Device and IP reputation - pluggable risk scoring for network origins."""

from fraud_anomaly_engine.reputation.ip import (
    HeuristicIpReputation,
    IpReputation,
    IpReputationProvider,
    StaticIpReputation,
    parse_ip,
)

__all__ = [
    "HeuristicIpReputation",
    "IpReputation",
    "IpReputationProvider",
    "StaticIpReputation",
    "parse_ip",
]

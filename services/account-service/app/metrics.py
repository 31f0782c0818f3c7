"""Prometheus counters for the account core."""

from __future__ import annotations

from prometheus_client import Counter

LOGINS = Counter(
    "account_logins_total",
    "Login attempts by outcome.",
    ["outcome"],
)

CREDIT_OPERATIONS = Counter(
    "credit_operations_total",
    "Credit consumes and grants by outcome.",
    ["operation", "outcome"],
)

STORE_CONFLICTS = Counter(
    "account_store_conflicts_total",
    "Optimistic update attempts rejected because the record changed.",
    ["operation"],
)

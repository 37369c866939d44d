"""Prometheus metrics for share links and downloads."""
from prometheus_client import REGISTRY, Counter

LINKS_ISSUED_TOTAL = Counter(
    "sharevault_links_issued_total",
    "Share links issued.",
    registry=REGISTRY,
)

DOWNLOAD_DECISIONS_TOTAL = Counter(
    "sharevault_download_decisions_total",
    "Download attempts by outcome (ACTIVE means the allowance was spent).",
    labelnames=["outcome"],
    registry=REGISTRY,
)

AUDIT_APPEND_FAILURES_TOTAL = Counter(
    "sharevault_audit_append_failures_total",
    "Download log entries that failed to write (append_failed) or were dropped from a full retry queue (dropped).",
    labelnames=["reason"],
    registry=REGISTRY,
)

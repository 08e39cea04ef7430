"""
Prometheus metrics for provisioner-ipxe.
"""

from prometheus_client import Counter, Histogram

BOOT_DIRECTIVES = Counter(
    "provisioner_boot_directives_total",
    "Boot directives issued, by directive kind",
    ["kind"],
)

CALLBACKS = Counter(
    "provisioner_callbacks_total",
    "Completion callbacks received, by outcome",
    ["outcome"],
)

STATE_WRITE_FAILURES = Counter(
    "provisioner_state_write_failures_total",
    "State store writes that failed",
)

SESSION_BUILD_SECONDS = Histogram(
    "provisioner_session_build_seconds",
    "Time spent rebuilding a seed session directory",
)

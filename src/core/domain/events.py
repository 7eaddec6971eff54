"""Events emitted to the host while provisioning.

The host decides what each event means (retry scheduling, notifications,
metrics); the protocol only reports that it happened.
"""

from __future__ import annotations

from enum import Enum


class VvmEvent(str, Enum):
    """Discrete diagnostics signalled during a subscription attempt."""

    # Self-provisioning gateway: page fetch, link click, or bad status after it.
    GATEWAY_CONNECTION_FAILED = "vvm3_spg_connection_failed"
    # Voicemail management gateway: the SPG URL query.
    MANAGEMENT_GATEWAY_CONNECTION_FAILED = "vvm3_vmg_connection_failed"
    CONFIRMATION_TIMED_OUT = "config_status_sms_time_out"

    def label(self) -> str:
        """Human readable label for tables and logs."""

        return self.name.replace("_", " ").capitalize()

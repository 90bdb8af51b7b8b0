from .poller import AlertPoller
from .store import CRITICAL_SEVERITIES, AlertStore

__all__ = ["AlertPoller", "AlertStore", "CRITICAL_SEVERITIES"]

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class RuntimeStats:
    started_at: float = field(default_factory=time.time)
    audit_enqueued: int = 0
    audit_written: int = 0
    audit_failed: int = 0
    audit_dropped: int = 0

    def uptime_seconds(self) -> int:
        return int(time.time() - self.started_at)

    def audit_pending(self) -> int:
        return self.audit_enqueued - self.audit_written - self.audit_failed

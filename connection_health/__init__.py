"""
Connection Health Monitor.

============================================================
CONTINUOUS DATABASE CONNECTIVITY PROBING
============================================================

Exercises a database endpoint's connectivity path around the
clock and prints a low-noise, per-second failure summary.

CORE PHILOSOPHY:
- A probe failure is data, never a reason to stop probing
- Nothing is silently dropped: unknown failures and slow
  operations are printed individually
- Quiet seconds print nothing; healthy seconds print successes

============================================================
PROBE GROUPS
============================================================

1. long     - N kept-alive connections, pinged every tick
2. short    - M probes dialing a fresh connection every tick
3. sentinel - independent one-shot dial every tick, even while
              other probes hang

============================================================
FAILURE CATEGORIES
============================================================

refused | timeout | deadline | eof | reset | invalid | slow |
uncategorized

============================================================
USAGE
============================================================

```python
from connection_health import (
    Monitor,
    MonitorConfig,
    SqlAlchemyProbeClient,
)

config = MonitorConfig.from_env()
monitor = Monitor(config, SqlAlchemyProbeClient(config.database))
await monitor.run_forever()
```

============================================================
"""

from .models import (
    ErrorCategory,
    ProbeKind,
    ProbeOutcome,
    ProbeSpec,
    CounterSnapshot,
)

from .classifier import (
    CLASSIFICATION_RULES,
    classify,
    describe_error,
)

from .counter import (
    SUMMARY_PERIOD_SECONDS,
    ErrorCounter,
)

from .clock import (
    ClockProtocol,
    LocalClock,
    MockClock,
)

from .sink import (
    EventSink,
    MemorySink,
)

from .scheduling import FixedRateTicker

from .client import (
    ProbeClient,
    ConnectionSource,
    ProbeConnection,
)

from .sqlalchemy_client import SqlAlchemyProbeClient

from .mock import (
    MockConfig,
    MockProbeClient,
)

from .probes import (
    LongLivedProbe,
    ShortLivedProbe,
    SentinelProbe,
)

from .monitor import Monitor

from .config import (
    DatabaseSettings,
    ProbeSettings,
    MonitorConfig,
)

from .exceptions import (
    ConnectionHealthError,
    ConfigurationError,
    ClientConfigurationError,
)


__all__ = [
    # Models
    "ErrorCategory",
    "ProbeKind",
    "ProbeOutcome",
    "ProbeSpec",
    "CounterSnapshot",
    # Classification
    "CLASSIFICATION_RULES",
    "classify",
    "describe_error",
    # Aggregation
    "SUMMARY_PERIOD_SECONDS",
    "ErrorCounter",
    # Output
    "ClockProtocol",
    "LocalClock",
    "MockClock",
    "EventSink",
    "MemorySink",
    # Scheduling
    "FixedRateTicker",
    # Clients
    "ProbeClient",
    "ConnectionSource",
    "ProbeConnection",
    "SqlAlchemyProbeClient",
    "MockConfig",
    "MockProbeClient",
    # Probes
    "LongLivedProbe",
    "ShortLivedProbe",
    "SentinelProbe",
    # Orchestration
    "Monitor",
    # Configuration
    "DatabaseSettings",
    "ProbeSettings",
    "MonitorConfig",
    # Exceptions
    "ConnectionHealthError",
    "ConfigurationError",
    "ClientConfigurationError",
]


__version__ = "1.0.0"

"""Quantix core library: progression, streaks, focus sessions and sync.

Public API re-exports for convenient imports:
    from quantix import Synchronizer, gain_xp, compute_streak, ...
"""

# Clock
from quantix.clock import (
    day_key,
    format_instant,
    parse_instant,
    resolve_timezone,
    utc_now,
)

# Errors
from quantix.errors import (
    LocalStorageError,
    QuantixError,
    RecordNotFound,
    RemoteError,
    ValidationError,
)

# Models
from quantix.models import (
    AppSettings,
    DayStats,
    Goal,
    JournalEntry,
    LocalState,
    SessionRecord,
    SessionState,
    StreakState,
    Task,
    TaskList,
    UserProfile,
)

# Progression
from quantix.progression import (
    gain_xp,
    lose_xp,
    rank_title,
    task_xp_value,
)

# Streaks
from quantix.streak import (
    build_day_stats,
    compute_streak,
    consecutive_days,
)

# Focus sessions
from quantix.focus import (
    SessionError,
    SessionTicker,
    elapsed_seconds,
)

# Sync
from quantix.config import AppConfig, load_config
from quantix.remote import MemoryRemote, RestRemote
from quantix.store import LocalStore
from quantix.sync import Mutation, Synchronizer, build_synchronizer

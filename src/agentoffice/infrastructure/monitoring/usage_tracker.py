"""
Usage Tracker

Records metadata about every model-backed (or cache-served) mission call and
keeps rolling statistics. After each tracked call a snapshot is written to a
local JSON file in the background; a failed write is logged and otherwise
ignored.

Token figures are estimates (``ceil(len(text) / 4)``), good enough for
alerting but not for billing.
"""

import asyncio
import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

import aiofiles
import structlog

logger = structlog.get_logger()

DEFAULT_MAX_RECORDS = 1000
SNAPSHOT_RECENT_CALLS = 50


@dataclass
class UsageRecord:
    """One tracked call."""

    endpoint: str
    estimated_tokens: int
    mode: str
    cached: bool
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "endpoint": self.endpoint,
            "estimatedTokens": self.estimated_tokens,
            "mode": self.mode,
            "cached": self.cached,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "UsageRecord":
        return cls(
            endpoint=str(raw["endpoint"]),
            estimated_tokens=int(raw.get("estimatedTokens", 0)),
            mode=str(raw.get("mode", "simulation")),
            cached=bool(raw.get("cached", False)),
            timestamp=datetime.fromisoformat(raw["timestamp"]),
        )


@dataclass
class UsageStats:
    """Aggregate over a set of usage records."""

    total_calls: int = 0
    cached_calls: int = 0
    api_calls: int = 0
    estimated_tokens: int = 0
    modes: dict[str, int] = field(
        default_factory=lambda: {"simulation": 0, "hybrid": 0, "real": 0}
    )

    @property
    def cache_hit_rate(self) -> float:
        """Percentage of calls served from the cache."""
        if self.total_calls == 0:
            return 0.0
        return self.cached_calls / self.total_calls * 100

    @classmethod
    def from_records(cls, records: list[UsageRecord]) -> "UsageStats":
        stats = cls()
        for record in records:
            stats.total_calls += 1
            if record.cached:
                stats.cached_calls += 1
            else:
                stats.api_calls += 1
            stats.estimated_tokens += record.estimated_tokens
            stats.modes[record.mode] = stats.modes.get(record.mode, 0) + 1
        return stats

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCalls": self.total_calls,
            "cachedCalls": self.cached_calls,
            "apiCalls": self.api_calls,
            "estimatedTokens": self.estimated_tokens,
            "modes": dict(self.modes),
            "cacheHitRate": self.cache_hit_rate,
        }


@dataclass
class LimitCheck:
    exceeded: bool
    warnings: list[str]


class UsageTracker:
    """Process-wide call recorder with a best-effort file snapshot."""

    def __init__(
        self,
        stats_file: str | Path = "usage-tracking.json",
        max_records: int = DEFAULT_MAX_RECORDS,
    ):
        self.stats_file = Path(stats_file)
        self.max_records = max_records
        self._records: list[UsageRecord] = []
        self._save_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self.logger = logger.bind(component="usage_tracker")

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough size estimate: one unit per four characters, rounded up."""
        return math.ceil(len(text or "") / 4)

    def track_call(
        self,
        endpoint: str,
        estimated_tokens: int,
        mode: str,
        cached: bool = False,
    ) -> UsageRecord:
        """
        Record one call and schedule a snapshot write.

        The write runs in the background when an event loop is running;
        callers never wait on it and never see its failures.
        """
        record = UsageRecord(
            endpoint=endpoint,
            estimated_tokens=estimated_tokens,
            mode=str(getattr(mode, "value", mode)),
            cached=cached,
        )
        self._records.append(record)
        if len(self._records) > self.max_records:
            del self._records[: len(self._records) - self.max_records]

        self.logger.debug(
            "usage.call_tracked",
            endpoint=endpoint,
            mode=record.mode,
            cached=cached,
            estimated_tokens=estimated_tokens,
        )
        self._schedule_save()
        return record

    def session_stats(self) -> UsageStats:
        return UsageStats.from_records(list(self._records))

    def daily_stats(self, day: Optional[date] = None) -> UsageStats:
        """Stats for records on ``day`` (today, server local time, by default)."""
        day = day or date.today()
        return UsageStats.from_records(
            [record for record in self._records if record.timestamp.date() == day]
        )

    def check_limits(self, max_calls: int, max_tokens: int) -> LimitCheck:
        """Compare today's uncached calls and estimated tokens with the given thresholds."""
        daily = self.daily_stats()
        warnings = []
        if daily.estimated_tokens > max_tokens:
            warnings.append(
                f"Daily token limit exceeded: {daily.estimated_tokens}/{max_tokens}"
            )
        if daily.api_calls > max_calls:
            warnings.append(f"Daily API call limit exceeded: {daily.api_calls}/{max_calls}")
        return LimitCheck(exceeded=bool(warnings), warnings=warnings)

    def snapshot(self) -> dict[str, Any]:
        return {
            "lastUpdated": datetime.now().isoformat(),
            "sessionStats": self.session_stats().to_dict(),
            "dailyStats": self.daily_stats().to_dict(),
            "recentCalls": [r.to_dict() for r in self._records[-SNAPSHOT_RECENT_CALLS:]],
        }

    async def save(self) -> bool:
        """Write the snapshot file. Returns False (and logs) on failure."""
        async with self._save_lock:
            try:
                payload = json.dumps(self.snapshot(), indent=2)
                async with aiofiles.open(self.stats_file, "w", encoding="utf-8") as f:
                    await f.write(payload)
                return True
            except Exception as e:
                self.logger.error("usage.snapshot_save_failed", file=str(self.stats_file), error=str(e))
                return False

    async def flush(self) -> None:
        """Wait for every scheduled snapshot write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def load_from_file(self) -> int:
        """
        Restore recent records from the snapshot file.

        A missing file is the normal first-run case. Returns the number of
        records restored.
        """
        if not self.stats_file.exists():
            return 0
        try:
            async with aiofiles.open(self.stats_file, "r", encoding="utf-8") as f:
                content = await f.read()
            data = json.loads(content)
            restored = [UsageRecord.from_dict(raw) for raw in data.get("recentCalls", [])]
        except (OSError, ValueError, KeyError, TypeError) as e:
            self.logger.warning("usage.snapshot_load_failed", file=str(self.stats_file), error=str(e))
            return 0

        self._records = restored[-self.max_records:]
        self.logger.info("usage.snapshot_loaded", records=len(self._records))
        return len(self._records)

    async def clear(self) -> None:
        """Forget all records and delete the snapshot file."""
        await self.flush()
        self._records.clear()
        self.stats_file.unlink(missing_ok=True)

    @property
    def records(self) -> list[UsageRecord]:
        return list(self._records)

    def _schedule_save(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Synchronous callers (CLI helpers, tests) get no background write
            return
        task = loop.create_task(self.save())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

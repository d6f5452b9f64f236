"""Runtime configuration helpers for the Gantt engine."""
from __future__ import annotations

import logging
import os
from typing import Optional

from pydantic import BaseModel, field_validator

from planline.gantt_core.models import DependencyType
from planline.gantt_core.scheduler import ScheduleAnchor

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROJECT_TASKS = 5000
DEFAULT_READ_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_CRITICAL_CHAINS = 100
DEFAULT_FS_PATH = os.path.join("var", "gantt", "gantt.json")

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def get_default_dependency_type() -> DependencyType:
    raw = (_get_env("GANTT_DEFAULT_DEPENDENCY_TYPE") or "FS").strip().upper()
    try:
        return DependencyType(raw)
    except ValueError:
        logger.warning("Unknown GANTT_DEFAULT_DEPENDENCY_TYPE %r, using FS", raw)
        return DependencyType.FS


def get_default_lag() -> int:
    raw = _get_env("GANTT_DEFAULT_LAG")
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid GANTT_DEFAULT_LAG %r, using 0", raw)
        return 0


def snapshot_cache_enabled() -> bool:
    raw = (_get_env("GANTT_SNAPSHOT_CACHE") or "on").strip().lower()
    if raw in _FALSY:
        return False
    if raw not in _TRUTHY:
        logger.warning("Invalid GANTT_SNAPSHOT_CACHE %r, cache stays on", raw)
    return True


def get_max_project_tasks() -> int:
    raw = _get_env("GANTT_MAX_PROJECT_TASKS")
    if not raw:
        return DEFAULT_MAX_PROJECT_TASKS
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid GANTT_MAX_PROJECT_TASKS %r", raw)
        return DEFAULT_MAX_PROJECT_TASKS
    return value if value > 0 else DEFAULT_MAX_PROJECT_TASKS


def get_max_critical_chains() -> int:
    raw = _get_env("GANTT_MAX_CRITICAL_CHAINS")
    if not raw:
        return DEFAULT_MAX_CRITICAL_CHAINS
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid GANTT_MAX_CRITICAL_CHAINS %r", raw)
        return DEFAULT_MAX_CRITICAL_CHAINS
    return value if value > 0 else DEFAULT_MAX_CRITICAL_CHAINS


def get_read_timeout_seconds() -> float:
    raw = _get_env("GANTT_READ_TIMEOUT_SECONDS")
    if not raw:
        return DEFAULT_READ_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid GANTT_READ_TIMEOUT_SECONDS %r", raw)
        return DEFAULT_READ_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_READ_TIMEOUT_SECONDS


def get_schedule_anchor() -> ScheduleAnchor:
    raw = (_get_env("GANTT_SCHEDULE_ANCHOR") or "finish").strip().lower()
    try:
        return ScheduleAnchor(raw)
    except ValueError:
        logger.warning("Unknown GANTT_SCHEDULE_ANCHOR %r, using finish", raw)
        return ScheduleAnchor.FINISH


def get_backend() -> str:
    return (_get_env("GANTT_BACKEND") or "memory").lower()


def get_fs_path() -> str:
    return _get_env("GANTT_FS_PATH") or DEFAULT_FS_PATH


class EngineConfig(BaseModel):
    """Options the Gantt engine reads at construction."""
    default_dependency_type: DependencyType = DependencyType.FS
    default_lag: int = 0
    snapshot_cache: bool = True
    max_project_tasks: int = DEFAULT_MAX_PROJECT_TASKS
    max_critical_chains: int = DEFAULT_MAX_CRITICAL_CHAINS
    read_timeout_seconds: float = DEFAULT_READ_TIMEOUT_SECONDS
    schedule_anchor: ScheduleAnchor = ScheduleAnchor.FINISH

    @field_validator("max_project_tasks", "max_critical_chains")
    @classmethod
    def validate_positive_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("limit must be positive")
        return value

    @field_validator("read_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("read_timeout_seconds must be positive")
        return value


def get_engine_config() -> EngineConfig:
    return EngineConfig(
        default_dependency_type=get_default_dependency_type(),
        default_lag=get_default_lag(),
        snapshot_cache=snapshot_cache_enabled(),
        max_project_tasks=get_max_project_tasks(),
        max_critical_chains=get_max_critical_chains(),
        read_timeout_seconds=get_read_timeout_seconds(),
        schedule_anchor=get_schedule_anchor(),
    )

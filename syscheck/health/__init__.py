"""Health subsystem — probe engine, result store, check loop."""

from .engine import CheckResult, HTTPStatusError, ProbeError, Status, derive_status, run_check
from .scheduler import CheckLoop
from .store import ResultStore, StoreSnapshot

from .context import RunContext
from .models import FileRecord, Location, LocationState, SyncAction
from .planner import build_plan, plan_actions
from .runner import ExitCode, run_merge

__all__ = [
    "ExitCode",
    "FileRecord",
    "Location",
    "LocationState",
    "RunContext",
    "SyncAction",
    "build_plan",
    "plan_actions",
    "run_merge",
]

"""waitchain — composable wait expressions over observable node trees."""

from waitchain.binding import ReadyState, TreeBinding
from waitchain.engine import WaitEngine
from waitchain.errors import (
    ExpressionFailedError,
    IllegalStateError,
    WaitError,
    WaitTimeoutError,
)
from waitchain.execution import Execution, ExecutionEvent, ExecutionState
from waitchain.expression import RESET_START_TIME, ExpressionNode, parse_timeout
from waitchain.result import FatalFailure, Pending, ReasonTemplate, Success, fatal, pending, success
from waitchain.steps import CheckMeta, Step
from waitchain.timer import AsyncioTimerBackend, ManualTimerBackend, Timer, TimerBackend

__all__ = [
    "RESET_START_TIME",
    "AsyncioTimerBackend",
    "CheckMeta",
    "Execution",
    "ExecutionEvent",
    "ExecutionState",
    "ExpressionFailedError",
    "ExpressionNode",
    "FatalFailure",
    "IllegalStateError",
    "ManualTimerBackend",
    "Pending",
    "ReadyState",
    "ReasonTemplate",
    "Step",
    "Success",
    "Timer",
    "TimerBackend",
    "TreeBinding",
    "WaitEngine",
    "WaitError",
    "WaitTimeoutError",
    "fatal",
    "parse_timeout",
    "pending",
    "success",
]

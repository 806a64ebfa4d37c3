"""Repository question-answering agent: actions, transcripts and the step loop."""

from .actions import (
    Action,
    AnswerAction,
    CodeAction,
    MalformedFunctionCall,
    PathAction,
    ProcAction,
    QueryAction,
    UnknownAction,
    decode_function_call,
)
from .collaborators import ChannelClosedError, ExchangeChannel, ModelClient, ToolResult, ToolRunner
from .errors import AgentError, AgentTimeout, InvariantViolation, ProcessingError
from .exchange import CodeStep, Exchange, PathStep, ProcStep
from .orchestrator import Agent, run_step

__all__ = [
    "Action",
    "Agent",
    "AgentError",
    "AgentTimeout",
    "AnswerAction",
    "ChannelClosedError",
    "CodeAction",
    "CodeStep",
    "Exchange",
    "ExchangeChannel",
    "InvariantViolation",
    "MalformedFunctionCall",
    "ModelClient",
    "PathAction",
    "PathStep",
    "ProcAction",
    "ProcStep",
    "ProcessingError",
    "QueryAction",
    "ToolResult",
    "ToolRunner",
    "UnknownAction",
    "decode_function_call",
    "run_step",
]

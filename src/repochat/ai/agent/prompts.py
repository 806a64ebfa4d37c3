"""Prompt text and the function catalog offered to the model."""

from __future__ import annotations

from typing import Any, Iterable

__all__ = ["FUNCTION_CALL_INSTRUCTION", "functions", "system"]

FUNCTION_CALL_INSTRUCTION = "Call a function. Do not answer"

_PATH_FUNCTION: dict[str, Any] = {
    "name": "path",
    "description": "Search the pathnames in the repository. Use when you need a file by name, or a directory.",
    "parameters": {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The query with which to search. This should consist of keywords that might match a path.",
            }
        },
        "required": ["query"],
    },
}

_CODE_FUNCTION: dict[str, Any] = {
    "name": "code",
    "description": "Search the contents of files in the repository semantically. Results are code chunks together with their paths.",
    "parameters": {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The query with which to search. This should describe what the code does.",
            }
        },
        "required": ["query"],
    },
}

_PROC_FUNCTION: dict[str, Any] = {
    "name": "proc",
    "description": "Read one or more files and extract the line ranges relevant to the query.",
    "parameters": {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "A description of the information to extract from the files.",
            },
            "paths": {
                "type": "array",
                "items": {
                    "type": "integer",
                    "description": "The alias of a path listed under PATHS.",
                },
            },
        },
        "required": ["query", "paths"],
    },
}

_ANSWER_FUNCTION: dict[str, Any] = {
    "name": "none",
    "description": "Call this to answer the user once you have enough information.",
    "parameters": {
        "type": "object",
        "properties": {
            "paths": {
                "type": "array",
                "items": {
                    "type": "integer",
                    "description": "The alias of a path that is relevant to the answer.",
                },
                "description": "The paths to use when writing the answer.",
            }
        },
        "required": ["paths"],
    },
}


def functions(add_proc: bool) -> list[dict[str, Any]]:
    """Return the function catalog; ``proc`` is only offered when paths exist."""

    catalog = [_CODE_FUNCTION, _PATH_FUNCTION]
    if add_proc:
        catalog.append(_PROC_FUNCTION)
    catalog.append(_ANSWER_FUNCTION)
    return [dict(function) for function in catalog]


def system(paths: Iterable[str]) -> str:
    """Return the system prompt listing the aliased paths currently in context."""

    lines = [
        "Your job is to choose the best action. Call functions to find information that will help answer the user's query. "
        "Call functions.none when you have enough information to answer. Follow these rules at all times:",
        "",
        "- ALWAYS call a function, DO NOT answer the question directly, even if the query is not in English",
        "- DO NOT call a function that you've used before with the same arguments",
        "- DO NOT assume the structure of the codebase, or the existence of files or folders",
        "- Call functions.none with paths that you are confident will help answer the user's query",
        "- If the user is referring to, or asking for, information that is in your history, call functions.none",
        "- If after attempting to gather information you are still unsure how to answer the query, call functions.none",
        "- If the query is a greeting, or not a question or an instruction call functions.none",
        "- When calling functions.code or functions.path, your query should consist of keywords",
        "- If you are unsure which path to use, call functions.path first",
        "- Refer to paths by their alias, the number listed before each path below",
    ]
    listed = list(paths)
    if listed:
        lines.extend(["", "PATHS:"])
        lines.extend(f"{alias}: {path}" for alias, path in enumerate(listed))
    return "\n".join(lines)

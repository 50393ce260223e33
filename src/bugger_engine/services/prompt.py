"""Prompt construction for bug analysis."""

import json
from typing import Sequence

from bugger_engine.schemas import BugRecord

MAX_CONTEXT_FILES = 30


def _format_console_logs(bug: BugRecord) -> str:
    if not bug.console_logs:
        return "None"
    return "\n".join(f"- {log.level.value}: {log.message}" for log in bug.console_logs)


def _format_network_errors(bug: BugRecord) -> str:
    if not bug.network_errors:
        return "None"
    return "\n".join(
        f"- {error.method or 'GET'} {error.url}: {error.status if error.status is not None else 'failed'}"
        for error in bug.network_errors
    )


def build_prompt(bug: BugRecord, code_context: Sequence[str]) -> str:
    """Render the analysis prompt for a bug and its candidate source files."""
    context_list = "\n".join(code_context[:MAX_CONTEXT_FILES]) or "None"
    viewport = json.dumps(bug.viewport.model_dump())

    return f"""You are a helpful AI assistant that analyzes bug reports and provides actionable feedback and suggested fixes.

## Bug Report

**Title:** {bug.title}
**Severity:** {bug.severity}
**URL:** {bug.url}
**Steps to reproduce:** {bug.steps}
**Expected behavior:** {bug.expected}
**Actual behavior:** {bug.actual}
**User Agent:** {bug.user_agent}
**Viewport:** {viewport}

**Console Logs:**
{_format_console_logs(bug)}

**Network Errors:**
{_format_network_errors(bug)}

## Code Context (file paths only)
{context_list}

## Instructions

Please provide your analysis in the following format:

## Analysis
[Concise markdown analysis, <= 250 words, bullet points allowed. Focus on likely causes and recommended fixes.]

## Patch
[Exactly one unified diff or the word NONE. If proposing a diff, reference paths from the provided list. Prefer minimal, safe fixes like null checks and guard clauses.]

## Confidence
[Single float line, 0..1. If not confident, set confidence <= 0.4 and Patch = NONE.]

## Rules
- If not confident, set confidence <= 0.4 and Patch = NONE
- Prefer minimal, safe fixes (null checks, guard clauses, prop existence)
- If proposing a diff, reference paths from the provided list
- Keep analysis under 250 words
- Use bullet points for clarity"""

"""Code context discovery.

Ranks source files under a repository root by how likely they are to be
involved in a bug reported on a given page URL. Only paths are returned; the
ranking is advisory input for the AI provider.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Sequence, Union
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

MAX_RESULTS = 30
MAX_DEPTH = 10

SKIP_DIRS = frozenset({"node_modules", "dist", ".git", "migrations", ".next", "build"})
SOURCE_EXTENSIONS = frozenset({".ts", ".tsx", ".js", ".jsx", ".css"})
KEYWORDS = ("error", "logger", "form", "route", "api", "bug", "component")

FILENAME_KEYWORD_SCORE = 10
PATH_KEYWORD_SCORE = 5
URL_SEGMENT_SCORE = 8
DEPTH_BONUS = 10
COMPONENT_EXT_SCORE = 3
SCRIPT_EXT_SCORE = 2


def url_segments(bug_url: str) -> List[str]:
    """Split the path of a URL into lower-cased, non-empty segments."""
    path = urlparse(bug_url).path
    return [segment.lower() for segment in path.split("/") if segment]


def relevance_score(relative_path: str, segments: Sequence[str]) -> int:
    """Score one file path (``/``-separated, relative to the root)."""
    lower_path = relative_path.lower()
    file_name = lower_path.rsplit("/", 1)[-1]
    score = 0

    for keyword in KEYWORDS:
        if keyword in file_name:
            score += FILENAME_KEYWORD_SCORE
        if keyword in lower_path:
            score += PATH_KEYWORD_SCORE

    for segment in segments:
        if segment in lower_path:
            score += URL_SEGMENT_SCORE

    depth = len(relative_path.split("/"))
    score += max(0, DEPTH_BONUS - depth)

    if file_name.endswith((".tsx", ".jsx")):
        score += COMPONENT_EXT_SCORE
    elif file_name.endswith((".ts", ".js")):
        score += SCRIPT_EXT_SCORE

    return score


def _walk(root: Path, directory: Path, segments: Sequence[str], scores: Dict[str, int], depth: int) -> None:
    if depth > MAX_DEPTH:
        return

    try:
        entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
    except OSError as e:
        logger.debug("Skipping unreadable directory %s: %s", directory, e)
        return

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                if entry.name not in SKIP_DIRS:
                    _walk(root, Path(entry.path), segments, scores, depth + 1)
            elif entry.is_file():
                if os.path.splitext(entry.name)[1].lower() not in SOURCE_EXTENSIONS:
                    continue
                relative_path = Path(entry.path).relative_to(root).as_posix()
                score = relevance_score(relative_path, segments)
                if score > 0:
                    scores[relative_path] = max(score, scores.get(relative_path, 0))
        except OSError as e:
            logger.debug("Skipping unreadable entry %s: %s", entry.path, e)


def discover(bug_url: str, root_path: Union[str, Path]) -> List[str]:
    """Return up to 30 repository-relative paths ranked by relevance to ``bug_url``.

    The result depends only on the URL and the file tree: ties are ordered
    by path. An unparsable URL or a missing root yields an empty list.
    """
    try:
        segments = url_segments(bug_url)
    except ValueError as e:
        logger.warning("Cannot parse bug URL %r for code context: %s", bug_url, e)
        return []

    root = Path(root_path).resolve()
    if not root.is_dir():
        logger.warning("Code context root %s is not a directory", root)
        return []

    scores: Dict[str, int] = {}
    _walk(root, root, segments, scores, depth=0)

    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return [path for path, _ in ranked[:MAX_RESULTS]]

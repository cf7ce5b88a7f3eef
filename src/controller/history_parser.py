# src/controller/history_parser.py — v1
"""Decode ``argocd app history`` tabular output into HistoryEntry records.

The client prints a header row (``ID  DATE  REVISION``), optionally preceded by a
``SOURCE <url>`` line, then one row per retained deployment, oldest first.
Columns are padded with at least two spaces; the date column itself contains
single spaces.
"""

from __future__ import annotations

import re

from argocd_deployer.core.models import HistoryEntry

_COLUMN_SPLIT = re.compile(r"\s{2,}")
_HEADER_TOKENS = frozenset({"ID", "SOURCE"})


def parse_history(text: str) -> list[HistoryEntry]:
    """Parse history output into entries ordered oldest to newest."""
    entries: list[HistoryEntry] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        first = line.split(maxsplit=1)[0]
        if first.upper() in _HEADER_TOKENS:
            continue

        history_id, deployed_at, revision = _split_row(line)
        entries.append(
            HistoryEntry(
                history_id=history_id,
                deployed_at=deployed_at,
                revision=revision,
                position=len(entries),
            )
        )
    return entries


def _split_row(line: str) -> tuple[str, str, str]:
    columns = _COLUMN_SPLIT.split(line)
    if len(columns) >= 3:
        return columns[0], columns[1], " ".join(columns[2:])

    # Single-space separated output: id first, revision last.
    tokens = line.split()
    if len(tokens) >= 3:
        return tokens[0], " ".join(tokens[1:-1]), tokens[-1]
    if len(tokens) == 2:
        return tokens[0], "", tokens[1]
    return tokens[0], "", ""


def revision_tokens(entry: HistoryEntry) -> list[str]:
    """Split a revision cell such as ``HEAD (53e28ff)`` into comparable tokens."""
    return [tok.strip("()") for tok in entry.revision.split() if tok.strip("()")]


def revision_matches(entry: HistoryEntry, target: str) -> bool:
    """True when target and a revision token contain one another.

    Tolerates short and long forms of the same commit SHA.
    """
    if not target:
        return False
    return any(target in tok or tok in target for tok in revision_tokens(entry))

"""
CSV Report - Human-readable export of a retrospective.

Layout:
    === Sprint Retrospective: <sprint> ===
    === Date: <createdAt> ===
    === Participants: <a, b, c> ===

    Section,Item,Author,Votes,VotedBy
    <one row per item, good items first, then improve items>

    === Brainstorming Notes ===          (only when comments exist)
    Item,Comment,Author

    === Action Points ===                (only when action points exist)
    Action,Assignee,CreatedBy

Free-text fields are wrapped in double quotes with embedded quotes
doubled. Nothing else is escaped.
"""

from __future__ import annotations
import re

from ..session.state import Session, Category

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")


def quote(value: str) -> str:
    """Standard CSV quoting for a free-text field."""
    return '"' + value.replace('"', '""') + '"'


def sanitize_sprint_name(name: str) -> str:
    """Replace every character outside [A-Za-z0-9_-] with an underscore."""
    return _UNSAFE_NAME_CHARS.sub("_", name)


def render_csv(session: Session) -> str:
    """Render a session as a deterministic CSV-like report."""
    participant_names = ", ".join(p.name for p in session.participants)
    lines = [
        f"=== Sprint Retrospective: {session.sprint_name} ===",
        f"=== Date: {session.created_at} ===",
        f"=== Participants: {participant_names} ===",
        "",
        "Section,Item,Author,Votes,VotedBy",
    ]

    for category in (Category.GOOD, Category.IMPROVE):
        for item in session.items_in(category):
            lines.append(",".join([
                category.section_label,
                quote(item.text),
                quote(item.author),
                str(item.vote_count),
                quote(", ".join(item.votes)),
            ]))

    if session.brainstorm_comments:
        lines.extend(["", "=== Brainstorming Notes ===", "Item,Comment,Author"])
        for comment in session.brainstorm_comments:
            item = session.get_item(comment.item_id)
            item_text = item.text if item else "Unknown"
            lines.append(",".join([
                quote(item_text),
                quote(comment.text),
                quote(comment.author),
            ]))

    if session.action_points:
        lines.extend(["", "=== Action Points ===", "Action,Assignee,CreatedBy"])
        for action_point in session.action_points:
            lines.append(",".join([
                quote(action_point.text),
                quote(action_point.assignee),
                quote(action_point.created_by),
            ]))

    return "\n".join(lines)

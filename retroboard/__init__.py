"""
Retroboard - Live sprint retrospective coordinator.

One admin runs one retrospective at a time. Participants join over an
event stream and move through a fixed sequence of phases:
- Collect and vote on what went well
- Collect and vote on what could be better
- Brainstorm on selected improvement items
- Agree on action points and assignees

Closed sessions are archived as JSON and CSV.
"""

__version__ = "0.1.0"

"""
NILM event simulator package.

Generates synthetic per-device power events for non-intrusive load monitoring
dashboards, aggregates them into a total-power signal, and keeps a rolling
history of aggregate samples for charting.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-001)

TODO:
- None
"""

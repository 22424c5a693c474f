"""Default statuses, priorities, types and activities for a new install."""

STATUSES = [
    {"name": "New", "is_default": True, "position": 1},
    {"name": "In progress", "position": 2},
    {"name": "Resolved", "position": 3},
    {"name": "Feedback", "position": 4},
    {"name": "Closed", "is_closed": True, "default_done_ratio": 100, "position": 5},
    {"name": "Rejected", "is_closed": True, "position": 6},
]

PRIORITIES = [
    {"name": "Low", "position": 1},
    {"name": "Normal", "is_default": True, "position": 2},
    {"name": "High", "position": 3},
    {"name": "Urgent", "position": 4},
    {"name": "Immediate", "position": 5},
]

TYPES = [
    {"name": "Bug", "is_default": True, "is_in_roadmap": False, "position": 1},
    {"name": "Feature", "position": 2},
    {"name": "Support", "is_in_roadmap": False, "position": 3},
]

TIME_ENTRY_ACTIVITIES = [
    {"name": "Design", "position": 1},
    {"name": "Development", "is_default": True, "position": 2},
]

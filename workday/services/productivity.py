from __future__ import annotations

KEYSTROKE_WEIGHT = 30.0
KEYSTROKES_PER_FULL_WEIGHT = 1000.0
ACTIVE_WEIGHT = 40.0
WORK_RELATED_WEIGHT = 25.0
VIOLATION_PENALTY = 0.5
MAX_VIOLATION_PENALTY = 5.0


def productivity_score(
    *,
    keystroke_count: int,
    active_minutes: float,
    work_related_minutes: float,
    violation_count: int,
    total_minutes: float,
) -> float:
    keystroke_term = min(KEYSTROKE_WEIGHT, max(0, keystroke_count) / KEYSTROKES_PER_FULL_WEIGHT * KEYSTROKE_WEIGHT)
    if total_minutes > 0:
        active_term = max(0.0, active_minutes) / total_minutes * ACTIVE_WEIGHT
        work_term = max(0.0, work_related_minutes) / total_minutes * WORK_RELATED_WEIGHT
    else:
        active_term = 0.0
        work_term = 0.0
    penalty = min(MAX_VIOLATION_PENALTY, max(0, violation_count) * VIOLATION_PENALTY)

    score = keystroke_term + active_term + work_term - penalty
    return round(min(100.0, max(0.0, score)), 2)

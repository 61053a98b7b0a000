# school_portal/services/timetable_conflicts.py - Timetable conflict detection
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

CONSECUTIVE_PERIOD_LIMIT = 4


def _field(entry: Any, name: str, default: Any = None) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(name, default)
    return getattr(entry, name, default)


def _key(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def detect_conflicts(
    entries: Iterable[Any],
    class_names: Optional[Mapping[str, str]] = None,
    teacher_names: Optional[Mapping[str, str]] = None,
) -> List[Dict[str, Any]]:
    """
    Find scheduling problems in a set of timetable entries.

    Two kinds are reported:
        teacher_conflict (high): one teacher holds more than one entry with the
            same day, start and end time
        no_break (medium): a class has four or more back-to-back periods on one
            day, each starting exactly when the previous one ends

    Args:
        entries: TimetableEntry rows or dicts with class_id, teacher_id,
            day_of_week, start_time, end_time
        class_names: class_id -> display name
        teacher_names: teacher_id -> full name

    Returns:
        List of conflict dicts (type, severity, day, time, details,
        affected_classes, teacher_name)
    """
    entries = list(entries)
    class_names = class_names or {}
    teacher_names = teacher_names or {}
    conflicts: List[Dict[str, Any]] = []

    def class_name(entry: Any) -> str:
        return class_names.get(_key(_field(entry, "class_id"))) or "Unknown"

    # teacher -> "day-start-end" -> entries
    teacher_schedule: Dict[str, Dict[str, List[Any]]] = defaultdict(lambda: defaultdict(list))
    for entry in entries:
        teacher_id = _key(_field(entry, "teacher_id"))
        if not teacher_id:
            continue
        time_key = f"{_field(entry, 'day_of_week')}-{_field(entry, 'start_time')}-{_field(entry, 'end_time')}"
        teacher_schedule[teacher_id][time_key].append(entry)

    for teacher_id, schedule in teacher_schedule.items():
        for slot in schedule.values():
            if len(slot) > 1:
                first = slot[0]
                teacher_name = teacher_names.get(teacher_id) or "Unknown"
                conflicts.append({
                    "type": "teacher_conflict",
                    "severity": "high",
                    "day": _field(first, "day_of_week"),
                    "time": f"{_field(first, 'start_time')} - {_field(first, 'end_time')}",
                    "details": f"{teacher_name} is scheduled for {len(slot)} classes at the same time",
                    "affected_classes": [class_name(e) for e in slot],
                    "teacher_name": teacher_name,
                })

    # class -> day -> entries
    class_schedule: Dict[str, Dict[str, List[Any]]] = defaultdict(lambda: defaultdict(list))
    for entry in entries:
        class_schedule[_key(_field(entry, "class_id"))][_field(entry, "day_of_week")].append(entry)

    for day_map in class_schedule.values():
        for day, day_entries in day_map.items():
            ordered = sorted(day_entries, key=lambda e: _field(e, "start_time") or "")
            consecutive = 1
            for i in range(1, len(ordered)):
                prev, current = ordered[i - 1], ordered[i]
                if _field(prev, "end_time") != _field(current, "start_time"):
                    consecutive = 1
                    continue

                consecutive += 1
                if consecutive >= CONSECUTIVE_PERIOD_LIMIT:
                    name = class_name(ordered[0])
                    conflicts.append({
                        "type": "no_break",
                        "severity": "medium",
                        "day": day,
                        "time": f"{_field(ordered[i - consecutive + 1], 'start_time')} - {_field(current, 'end_time')}",
                        "details": f"{name} has {consecutive} consecutive periods without a break",
                        "affected_classes": [name],
                        "teacher_name": None,
                    })
                    consecutive = 1

    return conflicts


def detect_generated_conflicts(entries: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Check AI generated entries for double-booked teachers.

    Every entry whose (teacher, day, start) slot was already taken is reported.
    """
    seen = set()
    conflicts = []
    for entry in entries:
        key = f"{entry.get('teacher_id')}-{entry.get('day_of_week')}-{entry.get('start_time')}"
        if key in seen:
            conflicts.append({
                "type": "teacher_conflict",
                "teacher_id": entry.get("teacher_id"),
                "day": entry.get("day_of_week"),
                "time": entry.get("start_time"),
            })
        seen.add(key)
    return conflicts


__all__ = ["detect_conflicts", "detect_generated_conflicts", "CONSECUTIVE_PERIOD_LIMIT"]

from slotwise.models.course import Course  # noqa: F401
from slotwise.models.lecturer import Lecturer  # noqa: F401
from slotwise.models.notification import Notification  # noqa: F401
from slotwise.models.room import LAB_ROOM_TYPES, Room, RoomType  # noqa: F401
from slotwise.models.time_slot import TimeSlot  # noqa: F401
from slotwise.models.timetable import Conflict, ConflictType, TimetableEntry  # noqa: F401
from slotwise.models.timetable_generation import (  # noqa: F401
    TimetableGenerationMetric,
    TimetableGenerationSettings,
)

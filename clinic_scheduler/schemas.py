import enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # Stored records and the HTTP surface both use camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ===== Clinic settings =====
class WorkHours(CamelModel):
    start: str = "09:00"
    end: str = "17:00"


class LunchTime(CamelModel):
    enabled: bool = True
    start: str = "12:00"
    end: str = "13:00"


class ClinicConfig(CamelModel):
    work_hours: WorkHours = Field(default_factory=WorkHours)
    lunch_time: LunchTime = Field(default_factory=LunchTime)
    max_concurrent_appointments: int = 1
    version: int = 0


class ClinicSettingsForm(CamelModel):
    """Flat admin form; replaces the whole ClinicConfig when accepted."""
    work_hours_start: str = ""
    work_hours_end: str = ""
    lunch_time_enabled: bool = False
    lunch_time_start: Optional[str] = None
    lunch_time_end: Optional[str] = None
    max_concurrent_appointments: int = 1


# ===== Blocked times =====
class BlockedInterval(CamelModel):
    id: str
    date: str
    start_time: str
    end_time: str
    reason: str = ""
    created_at: str = ""


class BlockedTimeCreate(CamelModel):
    date: str = ""
    start_time: str = ""
    end_time: str = ""
    reason: str = ""


# ===== Appointments =====
class AppointmentStatus(str, enum.Enum):
    scheduled = "scheduled"
    cancelled = "cancelled"
    completed = "completed"


class Appointment(CamelModel):
    id: str
    user_id: str
    user_name: str
    user_email: str
    date: str
    time: str
    reason: str = ""
    is_emergency: bool = False
    emergency_reason: str = ""
    status: AppointmentStatus = AppointmentStatus.scheduled
    created_at: str = ""


class BookRequest(CamelModel):
    # Everything defaults to empty so the booking service reports missing
    # fields field-by-field instead of a bare 422.
    user_name: str = ""
    user_email: str = ""
    date: str = ""
    time: str = ""
    reason: str = ""
    is_emergency: bool = False
    emergency_reason: str = ""
    locale: Optional[str] = None


class BookResponse(CamelModel):
    success: bool
    message: str
    appointment: Optional[Appointment] = None


# ===== Slots =====
class TimeSlot(CamelModel):
    time: str
    available: bool
    remaining_slots: int
    blocked_reason: Optional[str] = None


# ===== Generic =====
class MessageResponse(CamelModel):
    success: bool
    message: str


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    field_errors: Optional[Dict[str, List[str]]] = None


class SettingsResponse(CamelModel):
    success: bool
    message: str
    settings: ClinicConfig


class BlockedTimeResponse(CamelModel):
    success: bool
    message: str
    blocked_time: BlockedInterval

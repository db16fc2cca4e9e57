# clinic_scheduler/scripts/show_slots.py
from datetime import timedelta

from clinic_scheduler.config import settings
from clinic_scheduler.errors import StoreError
from clinic_scheduler.services.clock import clinic_now
from clinic_scheduler.services.slots import SlotService
from clinic_scheduler.store import get_store


def show_slots(service: SlotService, day: str):
    print(f"\n=== Slots for {day} | UTC offset={settings.CLINIC_UTC_OFFSET_MINUTES}min | STORE={settings.STORE_URL} ===")
    try:
        slots = service.all_with_status(day)
    except StoreError as e:
        print("ERROR reading the store:", e.message)
        return
    if not slots:
        print("No slots (check work hours).")
        return
    for s in slots:
        status = f"{s.remaining_slots} left" if s.available else s.blocked_reason
        print(f" - {s.time}  {status}")


if __name__ == "__main__":
    service = SlotService(get_store())
    today = clinic_now().date()
    show_slots(service, today.isoformat())
    show_slots(service, (today + timedelta(days=1)).isoformat())  # tomorrow
    show_slots(service, (today + timedelta(days=2)).isoformat())  # day after

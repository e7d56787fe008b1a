"""
seed_rooms.py
-------------
Seeds (creates or updates) the room catalogue: meeting rooms on the ground
floor up to the fourth, plus two virtual rooms. You can run this any time; it
will upsert by unique name.

Usage:
    python manage.py seed_rooms
"""

from django.core.management.base import BaseCommand

from rooms.models import Room


CATALOG = [
    # Ground floor
    {"name": "Sala Conferenze",  "floor": 0, "capacity": 40, "description": "Projector, stage microphones", "is_virtual": False},
    {"name": "Reception Meeting", "floor": 0, "capacity": 6,  "description": "Near the entrance",            "is_virtual": False},

    # First floor
    {"name": "Sala Riunioni 1",  "floor": 1, "capacity": 12, "description": "Whiteboard, TV screen",        "is_virtual": False},
    {"name": "Sala Riunioni 2",  "floor": 1, "capacity": 8,  "description": "Whiteboard",                   "is_virtual": False},

    # Second floor
    {"name": "Aula Formazione",  "floor": 2, "capacity": 25, "description": "Training room, 25 desks",      "is_virtual": False},
    {"name": "Focus Room",       "floor": 2, "capacity": 2,  "description": "Quiet room for calls",         "is_virtual": False},

    # Third and fourth floor
    {"name": "Sala Direzione",   "floor": 3, "capacity": 10, "description": "Video conferencing kit",       "is_virtual": False},
    {"name": "Terrazza",         "floor": 4, "capacity": 20, "description": "Open-air, weather permitting", "is_virtual": False},

    # Virtual rooms
    {"name": "Virtual Room A",   "floor": 0, "capacity": 100, "description": "Online meeting room",         "is_virtual": True},
    {"name": "Virtual Room B",   "floor": 0, "capacity": 100, "description": "Online meeting room",         "is_virtual": True},
]

FIELDS = ("floor", "capacity", "description", "is_virtual")


class Command(BaseCommand):
    help = "Seed or update the room catalogue."

    def handle(self, *args, **options):
        created = 0
        updated = 0

        for item in CATALOG:
            room, is_created = Room.objects.get_or_create(
                name=item["name"],
                defaults={**{f: item[f] for f in FIELDS}, "active": True},
            )
            if is_created:
                created += 1
                continue

            changed = [f for f in FIELDS if getattr(room, f) != item[f]]
            for f in changed:
                setattr(room, f, item[f])
            if not room.active:
                room.active = True
                changed.append("active")
            if changed:
                room.save(update_fields=changed)
                updated += 1

        self.stdout.write(self.style.SUCCESS(f"Seed complete. Created={created}, Updated={updated}"))

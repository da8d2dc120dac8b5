#!/usr/bin/env python3
"""
Seed a local TeamMatch database with demo users and intent cards.

Usage:
    python scripts/seed_demo.py --db data/teammatch.db
    python scripts/seed_demo.py --db data/teammatch.db --dry-run
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from teammatch.models import IntentCard
from teammatch.repositories import SqlCardRepository

DEMO_USERS = [
    {"name": "Aarthi", "email": "demo01@teammatch.test", "hostelStatus": "hosteler"},
    {"name": "Bala", "email": "demo02@teammatch.test", "hostelStatus": "day-scholar"},
    {"name": "Charan", "email": "demo03@teammatch.test", "hostelStatus": "hosteler"},
    {"name": "Divya", "email": "demo04@teammatch.test", "hostelStatus": "day-scholar"},
    {"name": "Ezhil", "email": "demo05@teammatch.test", "hostelStatus": "hosteler"},
    {"name": "Farah", "email": "demo06@teammatch.test", "hostelStatus": "day-scholar"},
    {"name": "Gokul", "email": "demo07@teammatch.test", "hostelStatus": "hosteler"},
    {"name": "Hari", "email": "demo08@teammatch.test", "hostelStatus": "day-scholar"},
    {"name": "Isha", "email": "demo09@teammatch.test", "hostelStatus": "hosteler"},
    {"name": "Jeeva", "email": "demo10@teammatch.test", "hostelStatus": "day-scholar"},
]

SAMPLE_CARDS = [
    {
        "eventType": "Hackathon",
        "eventName": "Smart India Hackathon",
        "lookingForRoles": ["frontend", "backend", "presenter"],
        "requiredSkills": ["React", "Firebase", "TypeScript"],
        "availability": {"weekdays": True, "weekends": True, "startTime": "18:00", "endTime": "22:00"},
        "commitmentLevel": "win",
        "shortGoal": "Ship a clean MVP and pitch confidently.",
    },
    {
        "eventType": "Project",
        "eventName": "Campus App Project",
        "lookingForRoles": ["designer", "frontend"],
        "requiredSkills": ["Figma", "UI/UX", "React"],
        "availability": {"weekdays": True, "weekends": False, "startTime": "17:00", "endTime": "20:00"},
        "commitmentLevel": "serious",
        "shortGoal": "Build a usable product with great UX.",
    },
    {
        "eventType": "Sports",
        "eventName": "Inter-hostel Badminton",
        "lookingForRoles": ["manager", "presenter"],
        "requiredSkills": ["Leadership", "Coordination"],
        "availability": {"weekdays": False, "weekends": True, "startTime": "08:00", "endTime": "11:00"},
        "commitmentLevel": "casual",
        "shortGoal": "Have fun, play well, and make friends.",
    },
]


def demo_uid(index: int) -> str:
    return f"demo-{index + 1:02d}"


def build_demo_cards():
    """Two cards for every third user, one for the rest."""
    cards = []
    for i, user in enumerate(DEMO_USERS):
        picks = [SAMPLE_CARDS[i % len(SAMPLE_CARDS)]]
        if i % 3 == 0:
            picks.append(SAMPLE_CARDS[(i + 1) % len(SAMPLE_CARDS)])
        for base in picks:
            cards.append(IntentCard.from_dict({
                **base,
                "ownerUid": demo_uid(i),
                "ownerName": user["name"],
                "ownerEmail": user["email"],
                "hostelStatus": user["hostelStatus"],
                "isPublic": True,
            }, card_id=""))
    return cards


def seed(db_path: Path, dry_run: bool = False):
    cards = build_demo_cards()
    print(f"Seeding {len(DEMO_USERS)} demo users with {len(cards)} intent cards...")

    if dry_run:
        print("\n[DRY RUN] Would create:")
        for card in cards:
            print(f"  {card.owner_uid} {card.owner_name}: {card.event_name}")
        return

    repo = SqlCardRepository(db_path)
    for card in cards:
        stored = repo.create_card(card)
        print(f"- {stored.owner_name} uid={stored.owner_uid} card={stored.id}")

    print("\nDone.")
    print(f"Next: teammatch --db {db_path} matches --uid demo-01 --card <card id>")


def main():
    parser = argparse.ArgumentParser(description="Seed demo users and intent cards")
    parser.add_argument("--db", default="data/teammatch.db", help="Path to SQLite database")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be created")
    args = parser.parse_args()

    seed(Path(args.db), dry_run=args.dry_run)


if __name__ == "__main__":
    main()

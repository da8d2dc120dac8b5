"""
Card files: JSON import/export of intent cards.

A card file is either a list of card objects or {"cards": [...]}, using the
same camelCase field names as the hosted backend.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .models import IntentCard
from .schema import validate_card


def load_card_file(path: Path) -> List[Dict[str, Any]]:
    """Raw card dicts from a card file. Missing or empty files give []."""
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as f:
        content = f.read().strip()
    if not content:
        return []
    data = json.loads(content)
    if isinstance(data, dict):
        data = data.get("cards", [])
    if not isinstance(data, list):
        raise ValueError(f"Card file must hold a list of cards: {path}")
    return [d for d in data if isinstance(d, dict)]


def parse_cards(raw_cards: List[Dict[str, Any]]) -> Tuple[List[IntentCard], List[Tuple[int, List[str]]]]:
    """
    Validate and convert raw card dicts.

    Returns:
        (valid cards, [(index, errors)] for rejected entries)
    """
    cards: List[IntentCard] = []
    rejected: List[Tuple[int, List[str]]] = []
    for i, raw in enumerate(raw_cards):
        errors = validate_card(raw)
        if not raw.get("ownerUid"):
            errors.append("Missing required field: ownerUid")
        if errors:
            rejected.append((i, errors))
            continue
        cards.append(IntentCard.from_dict(raw, card_id=raw.get("id") or ""))
    return cards, rejected


def save_card_file(path: Path, cards: List[IntentCard]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump({"cards": [c.to_dict() for c in cards]}, f, indent=2, ensure_ascii=False)

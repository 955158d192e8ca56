"""JSON-backed catalogue: ``{brandLogo, sizeIcon, designs: [...]}``.

Every write replaces the whole file. There is no locking, so two
concurrent writers race and the last one wins.
"""
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import DEFAULT_BRAND_LOGO, DEFAULT_SIZE_ICON
from .errors import StorageError, ValidationError

LOGGER = logging.getLogger("tilecat.store")

POSITION_LAST = 1e12
ALL_THEMES = "all"

Design = Dict[str, Any]
Document = Dict[str, Any]


def now_ms() -> int:
    return int(time.time() * 1000)


def sort_key(design: Design) -> Tuple[float, float]:
    position = design.get("position")
    if not isinstance(position, (int, float)) or isinstance(position, bool):
        position = POSITION_LAST
    return position, design.get("createdAt") or 0


class CatalogueStore:
    def __init__(self, path: Path, brand_logo: str = DEFAULT_BRAND_LOGO, size_icon: str = DEFAULT_SIZE_ICON):
        self.path = Path(path)
        self.brand_logo = brand_logo
        self.size_icon = size_icon

    def init(self) -> None:
        """Create the catalogue file and seed branding if it is missing or blank."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists() and self.path.read_text(encoding="utf-8").strip():
            return
        self.save({"brandLogo": self.brand_logo, "sizeIcon": self.size_icon, "designs": []})
        LOGGER.info("seeded empty catalogue at %s", self.path)

    def load(self) -> Document:
        """Read the document; anything unreadable counts as ``{}``."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            LOGGER.warning("catalogue %s unreadable, treating as empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, doc: Document) -> None:
        try:
            self.path.write_text(json.dumps(doc, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"could not write catalogue: {e}") from e

    def _load_for_write(self) -> Document:
        doc = self.load()
        doc["brandLogo"] = doc.get("brandLogo") or self.brand_logo
        doc["sizeIcon"] = doc.get("sizeIcon") or self.size_icon
        if not isinstance(doc.get("designs"), list):
            doc["designs"] = []
        return doc

    def sorted_document(self) -> Document:
        doc = self.load()
        if isinstance(doc.get("designs"), list):
            doc["designs"] = sorted(doc["designs"], key=sort_key)
        return doc

    def upsert(self, record: Design, now: Optional[int] = None) -> Document:
        """Insert or shallow-merge ``record`` by id and return the saved document.

        ``updatedAt`` is stamped on every call, ``createdAt`` only on insert.
        An incoming ``themeData`` is merged key by key into the stored one.
        """
        now = now_ms() if now is None else now
        doc = self._load_for_write()
        designs: List[Design] = doc["designs"]

        incoming = dict(record)
        incoming.pop("createdAt", None)
        incoming["updatedAt"] = now

        idx = next((i for i, d in enumerate(designs) if d.get("id") == incoming["id"]), None)
        if idx is None:
            incoming["createdAt"] = now
            designs.append(incoming)
        else:
            current = designs[idx]
            if "themeData" in incoming:
                incoming["themeData"] = {**(current.get("themeData") or {}), **incoming["themeData"]}
            designs[idx] = {**current, **incoming}

        self.save(doc)
        return doc

    def remove(self, design_id: str) -> Tuple[Document, bool]:
        doc = self._load_for_write()
        kept = [d for d in doc["designs"] if d.get("id") != design_id]
        removed = len(kept) != len(doc["designs"])
        doc["designs"] = kept
        self.save(doc)
        return doc, removed

    def reorder(self, order: Sequence[str], theme: Optional[str] = None) -> List[Design]:
        """Rewrite ``position`` from a client-supplied id order.

        Without a theme (or with ``"all"``) ``order`` must be a permutation
        of every stored id. With a theme, ``order`` only rearranges the slots
        its ids already occupy: ``[A, B, C, D]`` reordered with ``[D, B]``
        becomes ``[A, D, C, B]``.
        """
        if not isinstance(order, (list, tuple)) or not order or not all(isinstance(i, str) for i in order):
            raise ValidationError("Provide 'order' as a non-empty array of IDs.")
        if len(set(order)) != len(order):
            raise ValidationError("Order contains duplicate design IDs.")

        doc = self._load_for_write()
        current = sorted(doc["designs"], key=sort_key)
        by_id = {d.get("id"): d for d in current}

        if theme and theme != ALL_THEMES:
            unknown = [i for i in order if i not in by_id]
            if unknown:
                raise ValidationError(f"Unknown design IDs: {', '.join(unknown)}")
            members = set(order)
            supplied = iter(order)
            new_ids = [next(supplied) if d.get("id") in members else d.get("id") for d in current]
        else:
            if len(order) != len(by_id) or set(order) != set(by_id):
                raise ValidationError("Global reorder must include all existing design IDs.")
            new_ids = list(order)

        for i, design_id in enumerate(new_ids):
            by_id[design_id]["position"] = i + 1
        doc["designs"] = [by_id[i] for i in new_ids]
        self.save(doc)
        LOGGER.info("reordered %d designs (scope=%s)", len(new_ids), theme or ALL_THEMES)
        return doc["designs"]

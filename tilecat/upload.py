"""Upload pipeline: identify -> plan destinations -> write files -> upsert.

Nothing is rolled back. If a write fails halfway the files already
written stay on disk without a record until the design is deleted.
"""
import logging
import shutil
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import StorageError, ValidationError
from .paths import DEFAULT_THEME, FIRST_VARIANT, AssetLayout, Destination
from .store import CatalogueStore, Design, Document, now_ms
from .utils import (
    IMAGE_EXTS,
    VIDEO_EXTS,
    Identity,
    derive_identity,
    field_key,
    file_ext,
    parse_data_key,
    parse_faces,
    safe_ext,
)

LOGGER = logging.getLogger("tilecat.upload")

DEFAULT_SLOTS = ("main", "variants", "variants[]", "video", "preview")
_SINGLE_SLOTS = {
    "main": (IMAGE_EXTS, "Main: invalid image type"),
    "video": (VIDEO_EXTS, "Video: only mp4 allowed"),
    "preview": (IMAGE_EXTS, "Preview: invalid image type"),
}


@dataclass
class IncomingFile:
    field: str
    filename: str
    stream: BinaryIO


Plan = List[Tuple[IncomingFile, Destination]]


class UploadPipeline:
    def __init__(self, store: CatalogueStore, layout: AssetLayout, clock: Callable[[], int] = now_ms):
        self.store = store
        self.layout = layout
        self.clock = clock

    def run(self, form: Mapping[str, str], files: Sequence[IncomingFile]) -> Document:
        """Store one upload request and return the updated catalogue.

        Raises ValidationError before touching the disk, StorageError if a
        directory or file cannot be written.
        """
        files = [f for f in files if f.filename]
        identity = derive_identity(form.get("id"), form.get("label"), [f.filename for f in files])
        if not identity.id:
            raise ValidationError("Missing id (couldn't derive from filename)")

        theme = (form.get("theme") or "").strip() or DEFAULT_THEME
        now = self.clock()
        record: Design = {
            "id": identity.id,
            "theme": theme,
            "label": identity.label or identity.id,
            "finish": form.get("finish") or "",
            "faces": parse_faces(form.get("faces")),
        }
        if theme == DEFAULT_THEME:
            plan = self._plan_default(identity, form, files, record)
        else:
            plan = self._plan_themed(identity, theme, form, files, now, record)

        try:
            self.layout.ensure_dirs(dest for _, dest in plan)
        except OSError as e:
            raise StorageError(f"could not create asset directories: {e}") from e
        for incoming, dest in plan:
            self._persist(incoming, dest)

        doc = self.store.upsert(record, now=now)
        LOGGER.info("stored design %s (theme=%s, files=%d)", identity.id, theme, len(plan))
        return doc

    def _plan_default(
        self, identity: Identity, form: Mapping[str, str], files: Sequence[IncomingFile], record: Design
    ) -> Plan:
        plan: Plan = []
        seen = set()
        variant_no = FIRST_VARIANT
        for f in files:
            if f.field in _SINGLE_SLOTS:
                if f.field in seen:
                    continue
                seen.add(f.field)
                allowed, message = _SINGLE_SLOTS[f.field]
                ext = safe_ext(f.filename, allowed)
                if not ext:
                    raise ValidationError(message)
                dest = self.layout.resolve(DEFAULT_THEME, identity.id, f.field, ext)
                record[f.field] = dest.url
            elif f.field.startswith("variants"):
                ext = safe_ext(f.filename, IMAGE_EXTS)
                if not ext:
                    LOGGER.info("skipping variant %r for %s: extension not allowed", f.filename, identity.id)
                    continue
                dest = self.layout.resolve(DEFAULT_THEME, identity.id, f.field, ext, variant_no=variant_no)
                variant_no += 1
                record.setdefault("variants", []).append(dest.url)
            else:
                dest = self.layout.resolve(DEFAULT_THEME, identity.id, f.field, file_ext(f.filename))
            plan.append((f, dest))

        size_text = form.get("data[size_text]")
        if size_text is not None:
            record["sizeText"] = size_text
        return plan

    def _plan_themed(
        self,
        identity: Identity,
        theme: str,
        form: Mapping[str, str],
        files: Sequence[IncomingFile],
        stamp: int,
        record: Design,
    ) -> Plan:
        theme_data: Dict[str, object] = {}
        for name, value in form.items():
            key = parse_data_key(name)
            if key is not None:
                theme_data[key] = value

        grouped: Dict[str, List[IncomingFile]] = {}
        for f in files:
            if f.field in DEFAULT_SLOTS:
                continue
            grouped.setdefault(field_key(f.field), []).append(f)

        plan: Plan = []
        for key, group in grouped.items():
            urls = []
            for n, f in enumerate(group, start=1):
                serial: Optional[int] = n if len(group) > 1 else None
                dest = self.layout.resolve(theme, identity.id, key, file_ext(f.filename), stamp=stamp, serial=serial)
                plan.append((f, dest))
                urls.append(dest.url)
            theme_data[key] = urls[0] if len(urls) == 1 else urls

        record["themeData"] = theme_data
        return plan

    @staticmethod
    def _persist(incoming: IncomingFile, dest: Destination) -> None:
        try:
            with open(dest.path, "wb") as out:
                shutil.copyfileobj(incoming.stream, out)
        except OSError as e:
            raise StorageError(f"could not write {dest.path}: {e}") from e

"""Theme-specific asset layout under the public asset root.

Default theme::

    TILES/<ID>/<ID>_R1.<ext>      main
    TILES/<ID>/<ID>_R<n>.<ext>    variants, n = 2, 3, ...
    VIDEO/<ID>.mp4                video
    PREVIEW/<ID>.<ext>            preview
    ASSETS/<ID>/<tag>.<ext>       anything else

Every other theme writes ``ASSETS/<ID>/<key>_<stamp>.<ext>``.
"""
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .utils import field_key

LOGGER = logging.getLogger("tilecat.paths")

DEFAULT_THEME = "default"
FIRST_VARIANT = 2


@dataclass(frozen=True)
class Destination:
    directory: Path
    filename: str
    url: str

    @property
    def path(self) -> Path:
        return self.directory / self.filename


def _name(stem: str, ext: str) -> str:
    return f"{stem}.{ext}" if ext else stem


class AssetLayout:
    def __init__(self, root: Path, url_prefix: str = "../AXOLI/DATA"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def tiles_dir(self, design_id: str) -> Path:
        return self.root / "TILES" / design_id

    def asset_dir(self, design_id: str) -> Path:
        return self.root / "ASSETS" / design_id

    @property
    def video_dir(self) -> Path:
        return self.root / "VIDEO"

    @property
    def preview_dir(self) -> Path:
        return self.root / "PREVIEW"

    def _dest(self, directory: Path, filename: str) -> Destination:
        rel = (directory / filename).relative_to(self.root).as_posix()
        return Destination(directory, filename, f"{self.url_prefix}/{rel}")

    def resolve(
        self,
        theme: str,
        design_id: str,
        field: str,
        ext: str,
        variant_no: int = FIRST_VARIANT,
        stamp: int = 0,
        serial: Optional[int] = None,
    ) -> Destination:
        """Where a file uploaded under ``field`` goes, and what it is called.

        ``variant_no`` is the running counter for default-theme variants;
        ``stamp`` and ``serial`` only matter for other themes.
        """
        if theme != DEFAULT_THEME:
            key = field_key(field)
            stem = f"{key}_{stamp}" if serial is None else f"{key}_{stamp}_{serial}"
            return self._dest(self.asset_dir(design_id), _name(stem, ext))

        if field == "main":
            return self._dest(self.tiles_dir(design_id), _name(f"{design_id}_R1", ext))
        if field.startswith("variants"):
            return self._dest(self.tiles_dir(design_id), _name(f"{design_id}_R{variant_no}", ext))
        if field == "video":
            return self._dest(self.video_dir, f"{design_id}.mp4")
        if field == "preview":
            return self._dest(self.preview_dir, _name(design_id, ext))
        return self._dest(self.asset_dir(design_id), _name(field_key(field), ext))

    @staticmethod
    def ensure_dirs(destinations: Iterable[Destination]) -> None:
        for directory in sorted({d.directory for d in destinations}):
            directory.mkdir(parents=True, exist_ok=True)

    def purge(self, design_id: str) -> int:
        """Best-effort removal of everything stored for ``design_id``.

        Failures are logged and skipped. Returns how many paths went away.
        """
        removed = 0
        for folder in (self.tiles_dir(design_id), self.asset_dir(design_id)):
            if not folder.exists():
                continue
            try:
                shutil.rmtree(folder)
                removed += 1
            except OSError as e:
                LOGGER.warning("could not remove %s: %s", folder, e)

        prefix = design_id.upper() + "."
        for shared in (self.preview_dir, self.video_dir):
            try:
                entries = list(shared.iterdir())
            except OSError:
                continue
            for p in entries:
                if not p.name.upper().startswith(prefix):
                    continue
                try:
                    p.unlink()
                    removed += 1
                except OSError as e:
                    LOGGER.warning("could not remove %s: %s", p, e)
        return removed

from __future__ import annotations

from pathlib import Path

import pytest

from tilecat.config import Settings
from tilecat.paths import AssetLayout
from tilecat.store import CatalogueStore
from tilecat.upload import UploadPipeline


class FixedClock:
    def __init__(self, start: int = 1000, step: int = 1000):
        self.now = start - step
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(public_root=tmp_path / "public", cors_origins=("*",))


@pytest.fixture()
def store(settings: Settings) -> CatalogueStore:
    s = CatalogueStore(settings.catalogue)
    s.init()
    return s


@pytest.fixture()
def layout(settings: Settings) -> AssetLayout:
    return AssetLayout(settings.asset_root, settings.asset_url_prefix)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def pipeline(store: CatalogueStore, layout: AssetLayout, clock: FixedClock) -> UploadPipeline:
    return UploadPipeline(store, layout, clock=clock)

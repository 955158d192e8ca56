import io

import pytest

from tilecat.errors import StorageError, ValidationError
from tilecat.upload import IncomingFile, UploadPipeline


def _file(field, filename, data=b"data"):
    return IncomingFile(field, filename, io.BytesIO(data))


def test_id_and_label_derived_from_main_filename(pipeline: UploadPipeline, layout):
    doc = pipeline.run({}, [_file("main", "Blue Marble.png", b"png")])

    (design,) = doc["designs"]
    assert design["id"] == "BLUE_MARBLE"
    assert design["label"] == "BLUE MARBLE"
    assert design["main"].endswith("BLUE_MARBLE_R1.png")
    assert (layout.root / "TILES" / "BLUE_MARBLE" / "BLUE_MARBLE_R1.png").read_bytes() == b"png"


def test_variant_counter_skips_rejected_files(pipeline: UploadPipeline, layout):
    files = [
        _file("variants[]", "a.png"),
        _file("variants[]", "b.gif"),
        _file("variants[]", "c.jpg"),
        _file("variants[]", "d.webp"),
    ]
    doc = pipeline.run({"id": "tile1"}, files)

    tiles = layout.root / "TILES" / "TILE1"
    assert sorted(p.name for p in tiles.iterdir()) == ["TILE1_R2.png", "TILE1_R3.jpg", "TILE1_R4.webp"]
    assert [v.rsplit("/", 1)[-1] for v in doc["designs"][0]["variants"]] == [
        "TILE1_R2.png",
        "TILE1_R3.jpg",
        "TILE1_R4.webp",
    ]


def test_default_theme_record_fields(pipeline: UploadPipeline, layout):
    form = {"id": "T1", "label": "Tile One", "finish": "Matt", "faces": "4", "data[size_text]": "60x60"}
    files = [_file("video", "clip.MP4", b"vid"), _file("preview", "p.webp")]
    design = pipeline.run(form, files)["designs"][0]

    assert design["label"] == "Tile One"
    assert design["finish"] == "Matt"
    assert design["faces"] == 4
    assert design["sizeText"] == "60x60"
    assert design["video"] == "../AXOLI/DATA/VIDEO/T1.mp4"
    assert design["preview"] == "../AXOLI/DATA/PREVIEW/T1.webp"
    assert (layout.root / "VIDEO" / "T1.mp4").read_bytes() == b"vid"
    assert design["createdAt"] == design["updatedAt"] == 1000


@pytest.mark.parametrize("field, filename", [("main", "m.gif"), ("video", "v.mov"), ("preview", "p.bmp")])
def test_bad_required_extension_rejects_before_writing(pipeline: UploadPipeline, layout, store, field, filename):
    before = store.path.read_text()
    with pytest.raises(ValidationError):
        pipeline.run({"id": "T1"}, [_file("variants", "ok.png"), _file(field, filename)])
    assert not layout.root.exists()
    assert store.path.read_text() == before


def test_missing_id_is_rejected(pipeline: UploadPipeline, layout):
    with pytest.raises(ValidationError):
        pipeline.run({"label": "no id"}, [])
    with pytest.raises(ValidationError):
        pipeline.run({}, [_file("main", "")])
    assert not layout.root.exists()


def test_second_upload_updates_in_place(pipeline: UploadPipeline):
    pipeline.run({"id": "T1"}, [_file("main", "a.png")])
    doc = pipeline.run({"id": "T1", "finish": "Gloss"}, [_file("preview", "p.jpg")])

    (design,) = doc["designs"]
    assert design["main"].endswith("T1_R1.png")
    assert design["preview"].endswith("T1.jpg")
    assert design["finish"] == "Gloss"
    assert design["createdAt"] == 1000
    assert design["updatedAt"] == 2000


def test_themed_upload_builds_theme_data(pipeline: UploadPipeline, layout):
    form = {"id": "W1", "theme": "12x18theme", "data[title]": "Hello"}
    files = [
        _file("files[hero]", "hero.PNG"),
        _file("files[gallery][]", "g1.jpg"),
        _file("files[gallery][]", "g2.jpg"),
        _file("main", "ignored.png"),
    ]
    design = pipeline.run(form, files)["designs"][0]

    assert design["theme"] == "12x18theme"
    assert "main" not in design
    assert design["themeData"] == {
        "title": "Hello",
        "hero": "../AXOLI/DATA/ASSETS/W1/hero_1000.png",
        "gallery": [
            "../AXOLI/DATA/ASSETS/W1/gallery_1000_1.jpg",
            "../AXOLI/DATA/ASSETS/W1/gallery_1000_2.jpg",
        ],
    }
    assert sorted(p.name for p in (layout.root / "ASSETS" / "W1").iterdir()) == [
        "gallery_1000_1.jpg",
        "gallery_1000_2.jpg",
        "hero_1000.png",
    ]
    assert not (layout.root / "TILES").exists()


def test_themed_upload_keeps_earlier_theme_data(pipeline: UploadPipeline):
    pipeline.run({"id": "W1", "theme": "wide"}, [_file("files[hero]", "h.png")])
    design = pipeline.run({"id": "W1", "theme": "wide"}, [_file("files[badge]", "b.png")])["designs"][0]
    assert set(design["themeData"]) == {"hero", "badge"}
    assert design["themeData"]["badge"].endswith("badge_2000.png")


def test_failed_write_leaves_catalogue_untouched(pipeline: UploadPipeline, layout, store):
    # a directory squatting on the target name makes the write fail
    (layout.root / "TILES" / "T1" / "T1_R2.png").mkdir(parents=True)
    before = store.path.read_text()

    with pytest.raises(StorageError):
        pipeline.run({"id": "T1"}, [_file("main", "a.png"), _file("variants", "b.png")])

    assert (layout.root / "TILES" / "T1" / "T1_R1.png").exists()
    assert store.path.read_text() == before


@pytest.mark.parametrize(
    "form, field",
    [
        ({"id": "T1", "theme": "wide"}, "files[../../../../escaped]"),
        ({"id": "T1"}, "../../escaped"),
        ({"id": "T1"}, "/tmp/abs"),
    ],
)
def test_unsafe_field_names_are_rejected_before_writing(pipeline: UploadPipeline, layout, store, settings, form, field):
    before = store.path.read_text()
    with pytest.raises(ValidationError):
        pipeline.run(form, [_file("main", "ok.png"), _file(field, "x.png")])
    assert not layout.root.exists()
    assert sorted(p.name for p in settings.public_root.iterdir()) == ["data"]
    assert store.path.read_text() == before

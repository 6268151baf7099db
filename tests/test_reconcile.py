import shutil

from conftest import make_images
from ocrcheck import reconcile
from ocrcheck.discovery import discover_image_folders
from ocrcheck.reconcile import archive_destination, move_folder


def folder_named(input_root, name):
    return next(folder for folder in discover_image_folders(input_root) if folder.name == name)


def test_moves_images_and_prunes_empty_parent(roots):
    input_root, _, archive_root = roots
    make_images(input_root / "A" / "B", 3)
    folder = folder_named(input_root, "B")

    outcome = move_folder(folder, input_root, archive_root)

    assert outcome.error is None
    assert outcome.failed == []
    assert sorted(path.name for path in (archive_root / "A" / "B").iterdir()) == [
        "page_001.tif",
        "page_002.tif",
        "page_003.tif",
    ]
    assert not (input_root / "A" / "B").exists()
    assert not (input_root / "A").exists()
    assert input_root.exists()
    assert outcome.removed_dirs == [input_root / "A" / "B", input_root / "A"]


def test_parent_with_sibling_folder_is_kept(roots):
    input_root, _, archive_root = roots
    make_images(input_root / "A" / "B", 3)
    make_images(input_root / "A" / "C", 2)
    folder = folder_named(input_root, "B")

    outcome = move_folder(folder, input_root, archive_root)

    assert len(outcome.moved) == 3
    assert not (input_root / "A" / "B").exists()
    assert (input_root / "A").is_dir()
    assert len(list((input_root / "A" / "C").iterdir())) == 2


def test_pruning_stops_one_level_up(roots):
    input_root, _, archive_root = roots
    make_images(input_root / "X" / "Y" / "Z", 1)
    folder = folder_named(input_root, "Z")

    move_folder(folder, input_root, archive_root)

    assert not (input_root / "X" / "Y").exists()
    assert (input_root / "X").is_dir()


def test_folder_directly_under_input_root_never_removes_root(roots):
    input_root, _, archive_root = roots
    make_images(input_root / "B", 2)
    folder = folder_named(input_root, "B")

    move_folder(folder, input_root, archive_root)

    assert not (input_root / "B").exists()
    assert input_root.is_dir()
    assert len(list((archive_root / "B").iterdir())) == 2


def test_non_image_files_keep_source_folder(roots):
    input_root, _, archive_root = roots
    make_images(input_root / "A" / "B", 2)
    (input_root / "A" / "B" / "manifest.txt").write_text("batch 7")
    folder = folder_named(input_root, "B")

    outcome = move_folder(folder, input_root, archive_root)

    assert len(outcome.moved) == 2
    assert (input_root / "A" / "B" / "manifest.txt").exists()
    assert outcome.removed_dirs == []


def test_partial_failure_keeps_going(roots, monkeypatch):
    input_root, _, archive_root = roots
    make_images(input_root / "A" / "B", 5)
    folder = folder_named(input_root, "B")
    real_move = shutil.move

    def flaky_move(src, dst):
        if src.endswith("page_003.tif"):
            raise PermissionError(13, "Permission denied", src)
        return real_move(src, dst)

    monkeypatch.setattr(reconcile.shutil, "move", flaky_move)

    outcome = move_folder(folder, input_root, archive_root)

    assert len(outcome.moved) == 4
    assert [path.name for path in outcome.failed] == ["page_003.tif"]
    assert (input_root / "A" / "B" / "page_003.tif").exists()
    assert (input_root / "A" / "B").is_dir()


def test_failed_cross_device_move_leaves_no_archive_copy(roots, monkeypatch):
    input_root, _, archive_root = roots
    make_images(input_root / "A" / "B", 2)
    folder = folder_named(input_root, "B")
    real_move = shutil.move

    def copy_then_fail(src, dst):
        if src.endswith("page_002.tif"):
            shutil.copy2(src, dst)
            raise OSError(18, "Invalid cross-device link", src)
        return real_move(src, dst)

    monkeypatch.setattr(reconcile.shutil, "move", copy_then_fail)

    outcome = move_folder(folder, input_root, archive_root)

    assert [path.name for path in outcome.failed] == ["page_002.tif"]
    assert (input_root / "A" / "B" / "page_002.tif").exists()
    assert not (archive_root / "A" / "B" / "page_002.tif").exists()

    monkeypatch.setattr(reconcile.shutil, "move", real_move)
    retry = move_folder(folder_named(input_root, "B"), input_root, archive_root)

    assert retry.failed == []
    assert [path.name for path in retry.moved] == ["page_002.tif"]
    assert not (input_root / "A").exists()


def test_existing_archive_file_is_not_overwritten(roots):
    input_root, _, archive_root = roots
    make_images(input_root / "A" / "B", 2)
    (archive_root / "A" / "B").mkdir(parents=True)
    (archive_root / "A" / "B" / "page_001.tif").write_bytes(b"older run")
    folder = folder_named(input_root, "B")

    outcome = move_folder(folder, input_root, archive_root)

    assert [path.name for path in outcome.failed] == ["page_001.tif"]
    assert (archive_root / "A" / "B" / "page_001.tif").read_bytes() == b"older run"
    assert (input_root / "A" / "B" / "page_001.tif").exists()


def test_destination_creation_failure_aborts_folder(roots):
    input_root, _, archive_root = roots
    make_images(input_root / "A" / "B", 2)
    archive_root.mkdir()
    (archive_root / "A").write_text("a file where a directory should be")
    folder = folder_named(input_root, "B")

    outcome = move_folder(folder, input_root, archive_root)

    assert outcome.error is not None
    assert outcome.moved == []
    assert len(outcome.failed) == 2
    assert len(list((input_root / "A" / "B").iterdir())) == 2


def test_archive_destination_mirrors_relative_path(roots):
    input_root, _, archive_root = roots
    make_images(input_root / "2024" / "box_12" / "folder_3", 1)
    folder = folder_named(input_root, "folder_3")

    assert archive_destination(folder, input_root, archive_root) == archive_root / "2024" / "box_12" / "folder_3"

from sqlite_babel.config import DATA_FILE_PREFIX, cleanup_data_directory


def test_cleanup_only_removes_data_files(tmp_path):
    leftover = tmp_path / f"{DATA_FILE_PREFIX}abc123.csv"
    leftover.write_text("a,b\n")
    unrelated = tmp_path / "notes.csv"
    unrelated.write_text("keep me\n")
    database = tmp_path / "people.db"
    database.write_bytes(b"SQLite format 3\x00")
    nested = tmp_path / "archive"
    nested.mkdir()
    (nested / f"{DATA_FILE_PREFIX}old.csv").write_text("x\n")

    cleanup_data_directory(tmp_path)

    assert not leftover.exists()
    assert unrelated.read_text() == "keep me\n"
    assert database.exists()
    assert (nested / f"{DATA_FILE_PREFIX}old.csv").exists()


def test_cleanup_creates_missing_directory(tmp_path):
    data_dir = tmp_path / "not" / "yet"

    cleanup_data_directory(data_dir)

    assert data_dir.is_dir()

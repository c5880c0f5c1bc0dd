import pytest

from gitwalk.errors import RepositoryStateError
from gitwalk.git import LocalDirectory


class TestEnsureEmpty:
    def test_creates_missing_parents(self, tmp_path):
        directory = LocalDirectory(tmp_path / "a" / "b", "clone")

        directory.ensure_directory_exists_and_is_empty(delete_existing_contents=False)

        assert directory.path.is_dir()
        assert list(directory.path.iterdir()) == []

    def test_existing_directory_is_kept_without_permission(self, tmp_path):
        directory = LocalDirectory(tmp_path, "clone")
        directory.path.mkdir()
        (directory.path / "keep.txt").write_text("mine", encoding="utf-8")

        with pytest.raises(RepositoryStateError, match="GIT_DELETE_EXISTING_DIRECTORY_CONTENTS=true"):
            directory.ensure_directory_exists_and_is_empty(delete_existing_contents=False)

        assert (directory.path / "keep.txt").read_text(encoding="utf-8") == "mine"

    def test_existing_directory_is_recreated_with_permission(self, tmp_path):
        directory = LocalDirectory(tmp_path, "clone")
        (directory.path / "nested").mkdir(parents=True)
        (directory.path / "nested" / "old.txt").write_text("old", encoding="utf-8")

        directory.ensure_directory_exists_and_is_empty(delete_existing_contents=True)

        assert directory.path.is_dir()
        assert list(directory.path.iterdir()) == []

    def test_existing_file_is_replaced_with_permission(self, tmp_path):
        directory = LocalDirectory(tmp_path, "clone")
        directory.path.write_text("not a directory", encoding="utf-8")

        directory.ensure_directory_exists_and_is_empty(delete_existing_contents=True)

        assert directory.path.is_dir()


class TestEnsureGitRepository:
    def test_missing_directory(self, tmp_path):
        with pytest.raises(RepositoryStateError, match="does not exist"):
            LocalDirectory(tmp_path, "clone").ensure_directory_exists_and_is_git_repository()

    def test_plain_directory(self, tmp_path):
        directory = LocalDirectory(tmp_path, "clone")
        directory.path.mkdir()

        with pytest.raises(RepositoryStateError, match="not a git repository"):
            directory.ensure_directory_exists_and_is_git_repository()

    def test_repository(self, tmp_path):
        directory = LocalDirectory(tmp_path, "clone")
        (directory.path / ".git").mkdir(parents=True)

        directory.ensure_directory_exists_and_is_git_repository()

    def test_error_phase(self, tmp_path):
        with pytest.raises(RepositoryStateError) as exc_info:
            LocalDirectory(tmp_path, "clone").ensure_directory_exists_and_is_git_repository()

        assert exc_info.value.phase == "local repository"

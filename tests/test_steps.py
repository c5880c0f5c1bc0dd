"""
Walkthrough steps end to end against a local bare repository, and the
SSH-only checks that must fail before any network activity.
"""

import pytest
from dulwich.repo import Repo

from gitwalk import steps
from gitwalk.config import Configuration
from gitwalk.errors import ConfigurationError, CredentialError, RepositoryStateError


@pytest.fixture
def configuration(origin_repo, tmp_path) -> Configuration:
    return Configuration(
        remote_url=origin_repo,
        local_directory_base=str(tmp_path / "work"),
        local_directory_name="clone",
        committer_name="Walker",
        committer_email="walker@example.com",
    )


def test_clone_commit_push(configuration, origin_repo):
    cloned = steps.clone(configuration)

    local_path = configuration.local_repository_directory.path
    assert cloned == {
        "status": "cloned",
        "local_directory": str(local_path),
        "remote_url": origin_repo,
        "git_directory": str(local_path / ".git"),
    }

    (local_path / "hello.txt").write_text("hello\n", encoding="utf-8")
    committed = steps.commit(configuration)

    assert committed["status"] == "committed"
    assert committed["message"] == "Add all files"

    pushed = steps.push(configuration)

    assert pushed["status"] == "pushed"
    assert pushed["remote_url"] == origin_repo
    with Repo(origin_repo) as origin:
        assert origin.refs[f"refs/heads/{pushed['branch']}".encode()] == committed["commit"].encode("ascii")
        assert origin[committed["commit"].encode("ascii")].author == b"Walker <walker@example.com>"


def test_commit_with_explicit_message(configuration):
    steps.clone(configuration)
    (configuration.local_repository_directory.path / "a.txt").write_text("a", encoding="utf-8")

    result = steps.commit(configuration, message="Custom message")

    assert result["message"] == "Custom message"


def test_commit_clean_tree(configuration):
    steps.clone(configuration)

    result = steps.commit(configuration)

    assert result["status"] == "clean"
    assert result["commit"] is None
    assert result["message"] is None


def test_commit_before_clone(configuration):
    with pytest.raises(RepositoryStateError):
        steps.commit(configuration)


def test_second_clone_needs_permission(configuration):
    steps.clone(configuration)

    with pytest.raises(RepositoryStateError):
        steps.clone(configuration)


class TestSshPrerequisites:
    def test_ssh_clone_without_key(self, tmp_path):
        configuration = Configuration(
            remote_url="ssh://git@github.com/me/repo",
            local_directory_base=str(tmp_path),
            local_directory_name="clone",
        )

        with pytest.raises(ConfigurationError, match="SSH_KEY"):
            steps.clone(configuration)

        assert not configuration.local_repository_directory.path.exists()

    def test_ssh_clone_with_unusable_key(self, tmp_path):
        configuration = Configuration.from_environment(
            {
                "GIT_REMOTE_URL": "git@github.com:me/repo.git",
                "GIT_LOCAL_DIRECTORY_BASE": str(tmp_path),
                "SSH_KEY": "not-a-valid-ssh-key",
            }
        )

        with pytest.raises(CredentialError):
            steps.clone(configuration)

        assert not configuration.local_repository_directory.path.exists()

    def test_commit_does_not_need_a_key(self, configuration):
        steps.clone(configuration)
        ssh_configuration = Configuration(
            remote_url="ssh://git@github.com/me/repo",
            local_directory_base=configuration.local_directory_base,
            local_directory_name=configuration.local_directory_name,
        )

        assert steps.commit(ssh_configuration)["status"] == "clean"


class TestPushFollowsCloneOrigin:
    def test_local_origin_needs_no_key(self, configuration, origin_repo):
        steps.clone(configuration)
        local_path = configuration.local_repository_directory.path
        (local_path / "b.txt").write_text("b", encoding="utf-8")
        steps.commit(configuration)
        ssh_configuration = Configuration(
            remote_url="ssh://git@github.com/me/repo",
            local_directory_base=configuration.local_directory_base,
            local_directory_name=configuration.local_directory_name,
        )

        result = steps.push(ssh_configuration)

        assert result["status"] == "pushed"
        assert result["remote_url"] == origin_repo

    def test_ssh_origin_needs_a_key(self, configuration):
        steps.clone(configuration)
        with Repo(str(configuration.local_repository_directory.path)) as repo:
            config = repo.get_config()
            config.set((b"remote", b"origin"), b"url", b"ssh://git@example.invalid/me/repo")
            config.write_to_path()

        with pytest.raises(ConfigurationError, match="SSH_KEY"):
            steps.push(configuration)

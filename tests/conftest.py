import subprocess

import pytest


def git(cwd, *args):
    subprocess.run(["git", *args], cwd=str(cwd), check=True,
                   stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


@pytest.fixture(autouse=True)
def git_env(tmp_path_factory, monkeypatch):
    """Keep the user's git config out of the tests and give commits an author."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(var, "Test")
    for var in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(var, "test@example.com")


def commit(repo, name="README", content="hello\n"):
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", f"add {name}")


@pytest.fixture
def make_repo():
    def make(path, initial_commit=True):
        path.mkdir(parents=True, exist_ok=True)
        git(path, "init", "-q")
        if initial_commit:
            commit(path)
        return path
    return make


@pytest.fixture
def tracked_repo(tmp_path):
    """A clone whose branch tracks a bare remote and is level with it."""
    remote = tmp_path / "origin.git"
    git(tmp_path, "init", "-q", "--bare", str(remote))
    work = tmp_path / "work"
    git(tmp_path, "clone", "-q", str(remote), str(work))
    commit(work)
    git(work, "push", "-q", "-u", "origin", "HEAD")
    return work

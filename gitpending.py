#!/usr/bin/env python3
import argparse
import enum
import logging
import os
import stat
import subprocess
import sys
from abc import ABC, abstractmethod
from collections import namedtuple
from pathlib import Path

log = logging.getLogger("gitpending")

GIT = "git"


class Check(enum.Flag):
    NONE = 0
    UNCOMMITTED = enum.auto()
    UNTRACKED = enum.auto()
    UNSTAGED = enum.auto()
    UNPUSHED = enum.auto()
    ALL = UNCOMMITTED | UNTRACKED | UNSTAGED | UNPUSHED


# Report order is fixed regardless of how the flags were given.
REPORTS = (
    (Check.UNCOMMITTED, "has uncommited changes"),
    (Check.UNTRACKED, "has untracked changes"),
    (Check.UNSTAGED, "has unstaged changes"),
    (Check.UNPUSHED, "has unpushed changes"),
)


class ScanError(Exception):
    """An environment failure that aborts the whole scan."""

    exit_code = 1


class SpawnError(ScanError):
    exit_code = 3


class WaitError(ScanError):
    exit_code = 4


class ExecStatus(namedtuple("ExecStatus", "ret output")):
    __slots__ = ()

    @property
    def empty(self):
        return not self.output


def exec_in_dir(path, *args):
    """Run a command inside `path`, capture its stdout and wait for it."""
    debug = log.isEnabledFor(logging.DEBUG)
    log.debug("exec in %s: %s", path, " ".join(args))
    try:
        proc = subprocess.Popen(
            args,
            cwd=path,
            stdout=subprocess.PIPE,
            stderr=None if debug else subprocess.DEVNULL,
        )
    except OSError as e:
        raise SpawnError(f"failed to run command: {e}") from e

    try:
        out, _ = proc.communicate()
    except ChildProcessError as e:
        raise WaitError(f"failed to wait: {e}") from e

    output = out.decode(errors="replace")
    log.debug("empty stdout: %s, exit status: %s", not output, proc.returncode)
    return ExecStatus(0 if proc.returncode == 0 else 1, output)


class VcsChecker(ABC):
    def __init__(self, path):
        self.path = str(path)

    @abstractmethod
    def has_uncommitted(self):
        ...

    @abstractmethod
    def has_unstaged(self):
        ...

    @abstractmethod
    def has_untracked(self):
        ...

    @abstractmethod
    def has_unpushed(self):
        ...

    def pending(self, checks):
        """Yield the report text of every requested check that is positive."""
        probes = {
            Check.UNCOMMITTED: self.has_uncommitted,
            Check.UNTRACKED: self.has_untracked,
            Check.UNSTAGED: self.has_unstaged,
            Check.UNPUSHED: self.has_unpushed,
        }
        for check, message in REPORTS:
            if check in checks and probes[check]():
                yield message


class GitChecker(VcsChecker):
    def git(self, *args):
        return exec_in_dir(self.path, GIT, *args)

    def has_uncommitted(self):
        return self.git("diff-index", "--cached", "--quiet", "HEAD").ret != 0

    def has_unstaged(self):
        return self.git("diff-files", "--quiet").ret != 0

    def has_untracked(self):
        return not self.git("ls-files", "-o", "--exclude-standard").empty

    def resolve(self, *args):
        """Return the trimmed output of a git query, or None if it failed."""
        st = self.git(*args)
        if st.ret != 0:
            return None
        return st.output.rstrip()

    def has_unpushed(self):
        # Detached heads and branches without an upstream are not errors,
        # they just have nothing to push.
        local_name = self.resolve("symbolic-ref", "HEAD")
        if local_name is None:
            return False
        local_rev = self.resolve("rev-parse", local_name)
        if local_rev is None:
            return False
        remote_name = self.resolve(
            "for-each-ref", "--format=%(upstream:short)", local_name
        )
        if not remote_name:
            return False
        remote_rev = self.resolve("rev-parse", remote_name)
        if remote_rev is None:
            return False
        return local_rev != remote_rev


# Metadata directory name -> checker class, tried in order.
CHECKERS = (
    (".git", GitChecker),
)


def checker_for(path):
    """Return a checker for `path` if it is a repository root, else None."""
    for metadata, cls in CHECKERS:
        if (Path(path) / metadata).is_dir():
            return cls(path)
    return None


def walk_subdirs(path, checks):
    try:
        with os.scandir(path) as entries:
            for entry in entries:
                # Symlinked directories are not followed.
                if not entry.is_dir(follow_symlinks=False):
                    continue
                ret = walk(os.path.join(path, entry.name), checks)
                if ret != 0:
                    return ret
    except OSError as e:
        log.error("%s: %s", path, e.strerror)
        return 1
    return 0


def report(path, message):
    """Write one finding, passing undecodable path bytes through unchanged."""
    out = sys.stdout
    out.flush()
    out.buffer.write(os.fsencode(path) + b" " + message.encode() + b"\n")
    out.buffer.flush()


def walk(path, checks):
    """Report pending work for every repository under `path`.

    Stops descending at the first directory that holds VCS metadata. Returns
    a non-zero status if any path along the way could not be read.
    """
    try:
        st = os.stat(path)
    except OSError as e:
        log.error("%s: %s", path, e.strerror)
        return 1

    checker = checker_for(path)
    if checker is None:
        if not stat.S_ISDIR(st.st_mode):
            return 0
        return walk_subdirs(path, checks)

    for message in checker.pending(checks):
        report(path, message)
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="gitpending",
        description="List repositories under the given directories that have pending work.",
    )
    parser.add_argument("-c", dest="uncommitted", action="store_true",
                        help="list repositories with uncommitted changes")
    parser.add_argument("-t", dest="untracked", action="store_true",
                        help="list repositories with untracked changes")
    parser.add_argument("-s", dest="unstaged", action="store_true",
                        help="list repositories with unstaged changes")
    parser.add_argument("-p", dest="unpushed", action="store_true",
                        help="list repositories with unpushed changes")
    parser.add_argument("-a", dest="all", action="store_true",
                        help="list repositories with any pending work")
    parser.add_argument("-d", dest="debug", action="store_true",
                        help="log every git command run")
    parser.add_argument("paths", nargs="*", metavar="dir", default=["."])
    return parser.parse_args(argv)


def selected_checks(args):
    if args.all:
        return Check.ALL
    checks = Check.NONE
    if args.uncommitted:
        checks |= Check.UNCOMMITTED
    if args.untracked:
        checks |= Check.UNTRACKED
    if args.unstaged:
        checks |= Check.UNSTAGED
    if args.unpushed:
        checks |= Check.UNPUSHED
    return checks


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(format="gitpending: %(message)s")
    log.setLevel(logging.DEBUG if args.debug else logging.WARNING)
    checks = selected_checks(args)

    try:
        for path in args.paths:
            ret = walk(path, checks)
            if ret != 0:
                return ret
    except ScanError as e:
        log.error("%s", e)
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())

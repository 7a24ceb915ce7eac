# src/rutd/engine/git.py

"""
Version-control adapter.

The tasks directory is a plain git repository driven through the `git`
executable. Every mutation of the task store becomes one commit under a
fixed synthetic identity, and the repository can be cloned from and
synchronised with a remote named `origin`.

Remote operations resolve credentials in a fixed order (SSH key files,
SSH agent, configured username/password, git's own defaults) and hand
the result to the child git process through its environment.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import subprocess
from dataclasses import dataclass
from enum import Flag, auto
from pathlib import Path
from typing import Final, Mapping, Optional, Sequence, Union

from .config import GitConfig
from .errors import (
    CloneFailed,
    FetchFailed,
    GitError,
    IOFailure,
    MergeConflict,
    PushRejected,
    TargetNotEmpty,
)
from .logs import TRACE
from .model import MergeStrategy

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------

COMMIT_NAME: Final[str] = "rutd"
COMMIT_EMAIL: Final[str] = "rutd@auto.commit"

REMOTE_NAME: Final[str] = "origin"
SYNC_BRANCHES: Final[tuple[str, ...]] = ("master", "main")

SSH_KEY_NAMES: Final[tuple[str, ...]] = (
    "id_rsa",
    "id_ed25519",
    "id_ecdsa",
    "id_dsa",
    "github_rsa",
)

_IDENTITY_ENV: Final[dict[str, str]] = {
    "GIT_AUTHOR_NAME": COMMIT_NAME,
    "GIT_AUTHOR_EMAIL": COMMIT_EMAIL,
    "GIT_COMMITTER_NAME": COMMIT_NAME,
    "GIT_COMMITTER_EMAIL": COMMIT_EMAIL,
}

# Inline credential helper; the secrets travel in the environment only.
_CRED_USER_VAR: Final[str] = "_RUTD_CRED_USERNAME"
_CRED_PASS_VAR: Final[str] = "_RUTD_CRED_PASSWORD"
_CRED_HELPER: Final[str] = (
    f'!f() {{ echo "username=${_CRED_USER_VAR}"; echo "password=${_CRED_PASS_VAR}"; }}; f'
)

_SCP_LIKE_RE = re.compile(r"^(?:(?P<user>[^@/]+)@)?(?P<host>[^:/]+):(?!//)")


# ---------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------

class CredentialType(Flag):
    """Authentication methods a remote accepts."""

    NONE = 0
    SSH_KEY = auto()
    SSH_MEMORY = auto()
    USER_PASS_PLAINTEXT = auto()


@dataclass(frozen=True, slots=True)
class SshKey:
    username: str
    key_path: Path


@dataclass(frozen=True, slots=True)
class SshAgent:
    username: str


@dataclass(frozen=True, slots=True)
class UserPass:
    username: str
    password: str


@dataclass(frozen=True, slots=True)
class DefaultCredential:
    pass


Credential = Union[SshKey, SshAgent, UserPass, DefaultCredential]


def allowed_credential_types(url: str) -> CredentialType:
    """
    Derive the acceptable credential types from the remote URL scheme.
    """
    lowered = url.lower()
    if lowered.startswith(("ssh://", "git+ssh://", "ssh+git://")) or _SCP_LIKE_RE.match(url):
        return CredentialType.SSH_KEY | CredentialType.SSH_MEMORY
    if lowered.startswith(("http://", "https://")):
        return CredentialType.USER_PASS_PLAINTEXT
    return CredentialType.NONE


def username_from_url(url: str) -> Optional[str]:
    m = _SCP_LIKE_RE.match(url)
    if m:
        return m.group("user")
    m = re.match(r"^[a-z+]+://(?P<user>[^@/:]+)(?::[^@/]*)?@", url, re.IGNORECASE)
    if m:
        return m.group("user")
    return None


def resolve_credential(
    url: str,
    username: Optional[str],
    allowed: CredentialType,
    git_config: GitConfig,
    home: Optional[str] = None,
    agent_available: Optional[bool] = None,
) -> Credential:
    """
    Pick the credential to use for `url`.

    Order:
    1. SSH key files under ~/.ssh (id_rsa, id_ed25519, id_ecdsa, id_dsa, github_rsa)
    2. the SSH agent
    3. configured username/password (plaintext)
    4. git's default credential helpers
    """
    log.debug("Attempting authentication for URL: %s", url)
    log.debug("Allowed credential types: %s", allowed)

    user = username or "git"

    if allowed & (CredentialType.SSH_KEY | CredentialType.SSH_MEMORY):
        home = home if home is not None else os.environ.get("HOME")
        if home:
            for name in SSH_KEY_NAMES:
                key_path = Path(home) / ".ssh" / name
                if key_path.exists():
                    log.debug("Trying SSH key: %s (username %s)", key_path, user)
                    return SshKey(username=user, key_path=key_path)

        if agent_available is None:
            agent_available = bool(os.environ.get("SSH_AUTH_SOCK"))
        if allowed & CredentialType.SSH_KEY and agent_available:
            log.debug("Trying SSH agent authentication")
            return SshAgent(username=user)

    if allowed & CredentialType.USER_PASS_PLAINTEXT:
        log.debug("Trying username/password authentication")
        name = git_config.username or user
        if git_config.password:
            log.debug("Using username/password from configuration")
            return UserPass(username=name, password=git_config.password)

    log.debug("Using default credentials (may fail if authentication is required)")
    return DefaultCredential()


def credential_env(credential: Credential) -> dict[str, str]:
    """
    Translate a credential into environment variables for a git child process.
    """
    env = {"GIT_TERMINAL_PROMPT": "0"}

    if isinstance(credential, SshKey):
        env["GIT_SSH_COMMAND"] = (
            f"ssh -i {shlex.quote(str(credential.key_path))} -l {shlex.quote(credential.username)}"
        )
    elif isinstance(credential, SshAgent):
        env["GIT_SSH_COMMAND"] = f"ssh -l {shlex.quote(credential.username)}"
    elif isinstance(credential, UserPass):
        env.update(
            {
                "GIT_CONFIG_COUNT": "2",
                "GIT_CONFIG_KEY_0": "credential.helper",
                "GIT_CONFIG_VALUE_0": "",
                "GIT_CONFIG_KEY_1": "credential.helper",
                "GIT_CONFIG_VALUE_1": _CRED_HELPER,
                _CRED_USER_VAR: credential.username,
                _CRED_PASS_VAR: credential.password,
            }
        )

    return env


def _remote_env(url: str, git_config: GitConfig) -> dict[str, str]:
    credential = resolve_credential(
        url,
        username_from_url(url),
        allowed_credential_types(url),
        git_config,
    )
    return credential_env(credential)


# ---------------------------------------------------------------------
# Commit messages
# ---------------------------------------------------------------------

def generate_commit_message(
    action: str,
    scope: Optional[str],
    task_type: Optional[str],
    description: str,
    task_id: str,
) -> str:
    """
    Build `<action>(<scope>|<type>): <description>` followed by the task id(s).
    """
    return f"{action}({scope or '-'}|{task_type or '-'}): {description}\n\n{task_id}"


# ---------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------

def _run_git(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> subprocess.CompletedProcess:
    full_env = dict(os.environ)
    full_env.update(_IDENTITY_ENV)
    if env:
        full_env.update(env)

    cmd = ["git", "-c", "commit.gpgsign=false", "-c", "core.hooksPath=/dev/null", *args]
    log.log(TRACE, "Running %s in %s", " ".join(cmd), cwd or ".")

    try:
        return subprocess.run(
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            env=full_env,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        raise IOFailure("git command not found") from e


def _output(proc: subprocess.CompletedProcess) -> str:
    return (proc.stderr or proc.stdout or "").strip()


class GitRepo:
    """
    A git working tree rooted at `path`.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    # -----------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------

    @classmethod
    def open_or_init(cls, path: str | Path) -> "GitRepo":
        """
        Open the repository at `path`, creating it (and the directory) if needed.
        """
        p = Path(path)
        try:
            p.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure(f"Cannot create directory {p}: {e}") from e

        repo = cls(p)
        if not (p / ".git").exists():
            log.debug("Initialising git repository in %s", p)
            repo._git("init", "-q")
        return repo

    @classmethod
    def clone(cls, path: str | Path, url: str, git_config: GitConfig) -> "GitRepo":
        p = Path(path)
        if p.exists() and (not p.is_dir() or any(p.iterdir())):
            raise TargetNotEmpty(f"The target directory already exists and is not empty: {p}")

        log.info("Cloning %s to %s", url, p)
        p.parent.mkdir(parents=True, exist_ok=True)
        proc = _run_git(["clone", "-q", url, str(p)], env=_remote_env(url, git_config))
        if proc.returncode != 0:
            raise CloneFailed(f"Fail to clone repository: {_output(proc)}")

        log.info("Successfully cloned repository")
        return cls(p)

    # -----------------------------------------------------------------
    # Plumbing
    # -----------------------------------------------------------------

    def _git(
        self,
        *args: str,
        check: bool = True,
        env: Optional[Mapping[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        proc = _run_git(args, cwd=self.path, env=env)
        if check and proc.returncode != 0:
            raise GitError(f"git {args[0]} failed: {_output(proc)}")
        return proc

    def _rev(self, ref: str) -> Optional[str]:
        proc = self._git("rev-parse", "--verify", "-q", f"{ref}^{{commit}}", check=False)
        if proc.returncode != 0:
            return None
        return proc.stdout.strip()

    def head_commit(self) -> Optional[str]:
        """Return the HEAD commit id, or None while the branch is unborn."""
        return self._rev("HEAD")

    def current_branch(self) -> str:
        proc = self._git("symbolic-ref", "--short", "-q", "HEAD", check=False)
        return proc.stdout.strip() if proc.returncode == 0 else "master"

    def remotes(self) -> list[str]:
        return self._git("remote").stdout.split()

    def remote_url(self, name: str = REMOTE_NAME) -> str:
        return self._git("remote", "get-url", name).stdout.strip()

    # -----------------------------------------------------------------
    # Commits
    # -----------------------------------------------------------------

    def commit_all(self, message: str) -> None:
        """
        Stage the whole working tree and commit it, even when nothing changed.
        """
        self._git("add", "-A", ".")
        self._git("commit", "-q", "--allow-empty", "--no-verify", "-m", message)
        log.debug("Created commit: %s", self.head_commit())

    # -----------------------------------------------------------------
    # Sync
    # -----------------------------------------------------------------

    def sync(self, prefer: MergeStrategy, git_config: GitConfig) -> None:
        """
        Fetch, integrate and push `origin`.

        - no remote: nothing to do;
        - missing remote branches are treated as a fresh remote;
        - fast-forward when possible, otherwise merge with `prefer`
          deciding conflicts (MergeConflict when prefer is NONE);
        - push rejections are reported as PushRejected.
        """
        if not self.remotes():
            log.info("No remote repository configured. Skipping sync.")
            return

        log.info("Syncing with remote repository...")

        if REMOTE_NAME not in self.remotes():
            raise GitError(f"No remote named '{REMOTE_NAME}' found")

        env = _remote_env(self.remote_url(), git_config)
        self._fetch(env)

        if self.head_commit() is None:
            log.debug("No HEAD found, repository might be empty")
            log.info("No commits to push yet")
            return

        branch = self.current_branch()
        log.debug("Current branch: %s", branch)

        remote_ref = f"refs/remotes/{REMOTE_NAME}/{branch}"
        remote_commit = self._rev(remote_ref)
        if remote_commit is None:
            log.debug(
                "Remote branch '%s' not found. This might be a new remote repository.",
                remote_ref,
            )
        else:
            self._integrate(branch, remote_ref, remote_commit, prefer)

        self._push(branch, env)
        log.info("Successfully synced with remote repository")

    def _fetch(self, env: Mapping[str, str]) -> None:
        log.debug("Fetching from remote '%s'", REMOTE_NAME)
        for branch in SYNC_BRANCHES:
            refspec = f"+refs/heads/{branch}:refs/remotes/{REMOTE_NAME}/{branch}"
            proc = self._git("fetch", "-q", REMOTE_NAME, refspec, check=False, env=env)
            if proc.returncode == 0:
                log.debug("Fetched %s from remote", branch)
            elif "couldn't find remote ref" in _output(proc):
                log.debug("Remote branch %s does not exist yet", branch)
            else:
                raise FetchFailed(f"Fail to fetch from remote: {_output(proc)}")

    def _integrate(
        self,
        branch: str,
        remote_ref: str,
        remote_commit: str,
        prefer: MergeStrategy,
    ) -> None:
        head = self.head_commit()
        proc = self._git("merge-base", "HEAD", remote_commit, check=False)
        base = proc.stdout.strip() if proc.returncode == 0 else None

        if remote_commit == head or base == remote_commit:
            log.debug("Local repository is up to date")
            return

        if base == head:
            log.debug("Fast-forwarding local repository")
            self._git("update-ref", "-m", "Fast-forward update", f"refs/heads/{branch}", remote_commit)
            self._git("checkout", "-q", "--force", branch)
            log.info("Successfully pulled changes from remote")
            return

        log.debug("Merge required - analyzing merge strategy")
        self._merge(branch, remote_ref, remote_commit, prefer)

    def _merge(
        self,
        branch: str,
        remote_ref: str,
        remote_commit: str,
        prefer: MergeStrategy,
    ) -> None:
        args = ["merge", "--no-commit", "--no-ff", "--allow-unrelated-histories"]
        if prefer is MergeStrategy.LOCAL:
            args += ["-X", "ours"]
        elif prefer is MergeStrategy.REMOTE:
            args += ["-X", "theirs"]
        merge = self._git(*args, remote_commit, check=False)

        conflicts = self._conflicted_paths()
        if merge.returncode != 0 and not conflicts:
            self._git("merge", "--abort", check=False)
            raise GitError(f"git merge failed: {_output(merge)}")

        if conflicts:
            log.debug("Merge conflicts detected: %s", ", ".join(conflicts))
        else:
            log.debug("Successfully merged remote changes")

        for path in conflicts:
            if prefer is MergeStrategy.NONE:
                self._git("merge", "--abort", check=False)
                raise MergeConflict(
                    "Merge conflicts detected. Please resolve them manually in "
                    f"{self.path}, or sync again with --prefer local|remote"
                )
            self._resolve_conflict(path, "--ours" if prefer is MergeStrategy.LOCAL else "--theirs")

        message = f"Merge remote-tracking branch '{remote_ref}' into '{branch}'"
        self._git("commit", "-q", "--no-verify", "-m", message)
        log.debug("Created merge commit: %s", self.head_commit())

    def _conflicted_paths(self) -> list[str]:
        proc = self._git("diff", "--name-only", "--diff-filter=U", "-z", check=False)
        return [p for p in proc.stdout.split("\0") if p]

    def _resolve_conflict(self, path: str, side: str) -> None:
        proc = self._git("checkout", side, "--", path, check=False)
        if proc.returncode == 0:
            self._git("add", "--", path)
        else:
            # the preferred side deleted the file
            self._git("rm", "-q", "--cached", "--ignore-unmatch", "--", path)
            target = self.path / path
            if target.exists():
                target.unlink()

    def _push(self, branch: str, env: Mapping[str, str]) -> None:
        log.debug("Pushing to remote '%s'", REMOTE_NAME)
        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        proc = self._git("push", "--porcelain", REMOTE_NAME, refspec, check=False, env=env)
        if proc.returncode == 0:
            log.info("Successfully pushed to remote repository")
            return

        text = f"{proc.stdout}\n{proc.stderr}"
        if "non-fast-forward" in text or "fetch first" in text:
            log.info("Cannot push because remote contains work that you do not have locally")
            raise PushRejected(
                "Push rejected: The remote branch has commits that are not in your "
                "local branch. Pull first before pushing."
            )
        raise GitError(f"git push failed: {_output(proc)}")

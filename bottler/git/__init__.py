"""Git operations module.

Usage:
    from bottler.git import Repository

    repo = Repository(Path("/path/to/tap/Formula"))
    remotes = repo.remotes()
"""

from bottler.git.repository import GitError, Repository

__all__ = [
    "GitError",
    "Repository",
]

"""Git operations used to fetch sources and publish release tags.

Usage:
    from ship.git import Repository

    match Repository.clone(url, dest):
        case Ok(repo):
            repo.checkout_detached("v1.2.3")
        case Err(e):
            print(e.message)
"""

from ship.git.repository import GitError, Repository, is_github_slug, repository_url

__all__ = [
    "GitError",
    "Repository",
    "is_github_slug",
    "repository_url",
]

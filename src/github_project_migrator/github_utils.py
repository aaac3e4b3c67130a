from __future__ import annotations

import logging
import os
from typing import Final

from github import Auth, Github, GithubException, UnknownObjectException

from . import gh_cli, utils
from .exceptions import MigrationError, PreconditionError

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VARS: Final[tuple[str, ...]] = ("GH_TOKEN", "GITHUB_TOKEN")


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitHub token from pass path, env vars GH_TOKEN/GITHUB_TOKEN, or the gh login."""
    if pass_path:
        return utils.get_pass_value(pass_path)

    for env_var in _TOKEN_ENV_VARS:
        token: str | None = os.environ.get(env_var)
        if token:
            return token

    token = gh_cli.auth_token()
    if token is None:
        logger.warning("No GitHub token specified nor found, using anonymous access")
    return token


def get_client(token: str | None = None) -> Github:
    """Get a GitHub client using the token."""
    if token:
        return Github(auth=Auth.Token(token))
    return Github()


def validate_owner(client: Github, owner: str) -> str:
    """Check that the target owner exists, returning "organization" or "user".

    Raises:
        PreconditionError: If the owner is neither an organization nor a user
        MigrationError: If GitHub could not be queried
    """
    try:
        client.get_organization(owner)
    except UnknownObjectException as e:
        if e.status != 404:
            msg = f"Error checking organization '{owner}': {e}"
            raise MigrationError(msg) from e
    except GithubException as e:
        msg = f"GitHub API access failed while checking '{owner}': {e}"
        raise MigrationError(msg) from e
    else:
        logger.info(f"Target owner '{owner}' is an organization")
        return "organization"

    # Not an organization; projects can also be owned by a user
    try:
        client.get_user(owner)
    except UnknownObjectException as e:
        if e.status == 404:
            msg = f"Target owner '{owner}' is neither an organization nor a user on GitHub."
            raise PreconditionError(msg) from None
        msg = f"Error checking user '{owner}': {e}"
        raise MigrationError(msg) from e
    except GithubException as e:
        msg = f"GitHub API access failed while checking '{owner}': {e}"
        raise MigrationError(msg) from e

    logger.info(f"Target owner '{owner}' is a user")
    return "user"

"""Token format checks, live validation and the persisted credential."""

import json
import logging
import os
from pathlib import Path

import httpx
from ghgit import GitHubClient, GitHubUser

from .errors import CredentialError

logger = logging.getLogger(__name__)

TOKEN_PREFIXES = ("ghp_", "github_pat_")
TOKEN_KEY = "github_token"


def validate_token_format(token: str | None) -> str:
    """Check the token shape before any network call."""
    if not token or not token.strip():
        raise CredentialError("No token provided. Please enter a GitHub personal access token.")
    token = token.strip()
    if not token.startswith(TOKEN_PREFIXES):
        raise CredentialError(
            'Invalid token format. GitHub tokens should start with "ghp_" or "github_pat_"'
        )
    return token


def verify_token(client: GitHubClient) -> GitHubUser:
    """Confirm the client's token with a live "who am I" call."""
    if not client.authenticated:
        raise CredentialError()
    try:
        user = client.get_user()
    except httpx.HTTPStatusError as e:
        if e.response.status_code in (401, 403):
            logger.warning("Token rejected by GitHub (status=%d)", e.response.status_code)
            raise CredentialError() from e
        raise
    logger.info("Authenticated as %s", user.login)
    return user


class TokenStore:
    """Persists a single credential in a local JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def load(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Failed to read token file %s: %s", self.path, e)
            raise CredentialError(
                f"Stored token at {self.path} is unreadable. Please log in again."
            ) from e
        if not isinstance(data, dict):
            logger.error("Token file %s does not hold a JSON object", self.path)
            raise CredentialError(f"Stored token at {self.path} is unreadable. Please log in again.")
        token = data.get(TOKEN_KEY)
        logger.debug("Stored token %s", "found" if token else "missing")
        return token

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({TOKEN_KEY: token}, f)
        logger.info("Token stored at %s", self.path)

    def clear(self) -> bool:
        """Remove the stored token, return whether one existed."""
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info("Stored token removed")
        return True

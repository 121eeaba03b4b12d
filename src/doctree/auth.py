"""Access control for the doctree server.

Searching is open to every authenticated client. Indexing writes to the
store and is only granted when the server is not in read-only mode.
"""

import hmac
import logging

from fastmcp.server.auth import AccessToken, TokenVerifier

from doctree.config import Config
from doctree.errors import AuthError

logger = logging.getLogger(__name__)

SEARCH_SCOPE = "search"
INDEX_SCOPE = "index"


def granted_scopes(config: Config) -> list[str]:
    """Scopes a verified client receives under ``config``."""
    if config.read_only:
        return [SEARCH_SCOPE]
    return [SEARCH_SCOPE, INDEX_SCOPE]


class BearerTokenVerifier(TokenVerifier):
    """Checks bearer tokens against DOCTREE_AUTH_TOKEN."""

    def __init__(self, config: Config):
        super().__init__()
        self._config = config

    async def verify_token(self, token: str) -> AccessToken | None:
        """
        Verify a bearer token (without the "Bearer " prefix).

        Returns:
            AccessToken carrying the granted scopes, None if the token is rejected
        """
        scopes = granted_scopes(self._config)
        if self._config.auth_token is None:
            return AccessToken(token=token or "anonymous", client_id="anonymous", scopes=scopes)

        if not token:
            logger.warning("Empty authentication token")
            return None

        if not hmac.compare_digest(token.encode(), self._config.auth_token.encode()):
            logger.warning("Invalid authentication token")
            return None

        return AccessToken(token=token, client_id="authenticated", scopes=scopes)


def get_auth_provider(config: Config) -> BearerTokenVerifier | None:
    """BearerTokenVerifier when DOCTREE_AUTH_TOKEN is set, None otherwise."""
    if config.auth_token is not None:
        return BearerTokenVerifier(config)
    return None


def require_index_access(config: Config, operation: str = "indexing") -> None:
    """
    Refuse ``operation`` unless the server grants the index scope.

    Raises:
        AuthError: If the server is in read-only mode
    """
    if INDEX_SCOPE not in granted_scopes(config):
        logger.warning("Rejected %s: server is in read-only mode", operation)
        raise AuthError(f"Server is in read-only mode, {operation} is disabled")

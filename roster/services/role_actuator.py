"""Role grants and revocations through the chat platform REST API.

Responsibilities:
- Add/remove a role on a guild member
- Back off on rate limiting (HTTP 429, retry_after)
- Report failures as RoleActuationError
"""

import time
from threading import RLock
from typing import Callable, Optional

import requests

from roster.logging_config import get_logger
from roster.models.settings import RosterSettings

logger = get_logger(__name__)


class DeliveryError(Exception):
    """Raised when an outbound side effect could not be carried out."""

    pass


class RoleActuationError(DeliveryError):
    """Raised when a role could not be granted or revoked."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DiscordRoleActuator:
    """Grants and revokes guild roles with the bot's credentials.

    Without a bot token or guild ID the actuator is disabled: calls are
    logged and return False instead of touching the API.
    """

    def __init__(
        self,
        settings: Optional[RosterSettings] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize role actuator.

        Args:
            settings: Service settings (defaults to global configuration)
            session: HTTP session (a new one is created if omitted)
            sleep: Wait function used for rate limit back-off
        """
        if settings is None:
            from roster.config import get_settings

            settings = get_settings()

        self._lock = RLock()
        self._guild_id = settings.guild_id
        self._config = settings.discord
        self._sleep = sleep
        self._enabled = bool(self._config.bot_token and self._guild_id)

        self.session = session or requests.Session()
        if self._config.bot_token:
            self.session.headers.update(
                {
                    "Authorization": f"Bot {self._config.bot_token}",
                    "Content-Type": "application/json",
                    "User-Agent": "roster (https://github.com/roster, 1.0)",
                }
            )

        if self._enabled:
            logger.info("role_actuator_initialized", guild_id=self._guild_id)
        else:
            logger.info("role_actuator_disabled", message="No bot token or guild configured")

    def is_enabled(self) -> bool:
        return self._enabled

    def _member_role_path(self, subscriber_id: str, role_id: str) -> str:
        return f"/guilds/{self._guild_id}/members/{subscriber_id}/roles/{role_id}"

    def _request(self, method: str, path: str) -> requests.Response:
        """Send one request, waiting out rate limits up to max_retries.

        Raises:
            RoleActuationError: On transport failure or when retries run out
        """
        url = f"{self._config.api_base}{path}"
        attempts = 0
        while True:
            try:
                resp = self.session.request(method, url, timeout=self._config.request_timeout_seconds)
            except requests.RequestException as e:
                raise RoleActuationError(f"{method} {path} failed: {e}") from e

            if resp.status_code != 429:
                return resp

            attempts += 1
            if attempts > self._config.max_retries:
                raise RoleActuationError(f"{method} {path} rate limited", status_code=429)

            try:
                retry_after = float(resp.json().get("retry_after", 1.0))
            except ValueError:
                retry_after = 1.0
            logger.warning("role_api_rate_limited", method=method, retry_after=retry_after, attempt=attempts)
            self._sleep(retry_after)

    def grant_role(self, subscriber_id: str, role_id: str) -> bool:
        """Add a role to a member.

        Returns:
            True if the role was granted, False if the actuator is disabled

        Raises:
            RoleActuationError: If the API refused or could not be reached
        """
        if not self._enabled:
            logger.debug("role_grant_skipped", subscriber_id=subscriber_id, role_id=role_id)
            return False

        with self._lock:
            resp = self._request("PUT", self._member_role_path(subscriber_id, role_id))

        if resp.status_code not in (200, 204):
            logger.error(
                "role_grant_failed",
                subscriber_id=subscriber_id,
                role_id=role_id,
                status_code=resp.status_code,
            )
            raise RoleActuationError(
                f"Granting role {role_id} to {subscriber_id} failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        logger.info("role_granted", subscriber_id=subscriber_id, role_id=role_id)
        return True

    def revoke_role(self, subscriber_id: str, role_id: str) -> bool:
        """Remove a role from a member.

        A member or role that no longer exists (HTTP 404) counts as revoked.

        Returns:
            True if the role is gone, False if the actuator is disabled

        Raises:
            RoleActuationError: If the API refused or could not be reached
        """
        if not self._enabled:
            logger.debug("role_revoke_skipped", subscriber_id=subscriber_id, role_id=role_id)
            return False

        with self._lock:
            resp = self._request("DELETE", self._member_role_path(subscriber_id, role_id))

        if resp.status_code == 404:
            logger.info("role_revoke_member_missing", subscriber_id=subscriber_id, role_id=role_id)
            return True
        if resp.status_code not in (200, 204):
            logger.error(
                "role_revoke_failed",
                subscriber_id=subscriber_id,
                role_id=role_id,
                status_code=resp.status_code,
            )
            raise RoleActuationError(
                f"Revoking role {role_id} from {subscriber_id} failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        logger.info("role_revoked", subscriber_id=subscriber_id, role_id=role_id)
        return True

    def close(self) -> None:
        self.session.close()


_role_actuator: Optional[DiscordRoleActuator] = None
_actuator_lock = RLock()


def get_role_actuator() -> DiscordRoleActuator:
    """Get or create the singleton DiscordRoleActuator instance."""
    global _role_actuator
    if _role_actuator is None:
        with _actuator_lock:
            if _role_actuator is None:
                _role_actuator = DiscordRoleActuator()
    return _role_actuator


def reset_role_actuator() -> None:
    """Reset the singleton DiscordRoleActuator instance (for testing)."""
    global _role_actuator
    with _actuator_lock:
        if _role_actuator is not None:
            _role_actuator.close()
            _role_actuator = None

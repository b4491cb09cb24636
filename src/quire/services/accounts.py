"""Service account handling for the bulk loader."""

import logging
from uuid import UUID

from quire.domain import Credentials, Failure, UserRepository

logger = logging.getLogger(__name__)


class AccountError(RuntimeError):
    """Raised when the loader's account can neither log in nor register."""

    pass


class AccountWorker:
    """Resolve the account the bulk loader writes as."""

    def __init__(self, users: UserRepository):
        self.users = users

    async def login_or_register(self, email: str, password: str) -> UUID:
        """Log in, registering the account first if it does not exist.

        Raises:
            AccountError: On a wrong password or a failed registration
        """
        credentials = Credentials(email=email, password=password)

        logger.info(f"Logging in {email}")
        user_id = await self.users.login_user(credentials)
        if not isinstance(user_id, Failure):
            logger.info("Login succeeded")
            return user_id
        if user_id is not Failure.NOT_FOUND:
            raise AccountError(f"Could not log in {email}: {user_id.name}")

        logger.info("No such account; registering")
        user_id = await self.users.create_user(credentials)
        if isinstance(user_id, Failure):
            raise AccountError(f"Could not register {email}: {user_id.name}")

        logger.info("Registration succeeded")
        return user_id

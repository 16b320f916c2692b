"""
Account Deletion Service
========================

Purpose
-------
Delete a user account by email and remove the user from every quest
leaderboard.

Domain
------
1. Resolve the email to a user id (scan; unknown email -> NotFoundError)
2. Run the leaderboard removal fan-out (best effort)
3. Delete the user record, whatever the fan-out outcome

The leaderboard fan-out runs before the user record is deleted so that an
operator can still see the account if step 1 or the quest scan fails. A
failed individual leaderboard write never blocks the deletion; it is
reported in the result for retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

from museumquest.core.store.base import RemoteStore
from museumquest.core.validation.input_validator import InputValidator
from museumquest.modules.leaderboard.cascade import CascadeSummary, LeaderboardCascade
from museumquest.modules.shared.base_service import BaseService
from museumquest.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from museumquest.core.config.manager import ConfigManager


@dataclass(frozen=True)
class AccountDeletionResult:
    user_id: str
    email: str
    leaderboard_updates: CascadeSummary
    user_record_deleted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "user_record_deleted": self.user_record_deleted,
            "leaderboard_updates": self.leaderboard_updates.to_dict(),
        }


class AccountDeletionService(BaseService):
    """
    Account deletion with leaderboard cascade.

    Public Methods
    --------------
    - delete_account() -> Delete by email, returns AccountDeletionResult
    """

    def __init__(
        self,
        store: RemoteStore,
        cascade: LeaderboardCascade,
        config_manager: "ConfigManager",
        logger: "Logger",
    ) -> None:
        super().__init__(config_manager, logger)
        self._store = store
        self._cascade = cascade

    async def delete_account(self, email: str) -> AccountDeletionResult:
        """
        Delete the account registered under ``email``.

        Raises:
            ValidationError: Malformed email
            NotFoundError: No user has this email
            RemoteStoreError: The lookup or the quest scan failed
        """
        email = InputValidator.validate_email(email)

        user = await self._store.find_user_by_email(email)
        if user is None or not user.get("userId"):
            raise NotFoundError("User", email)
        user_id = str(user["userId"])

        self.log_operation("delete_account", user_id=user_id)

        summary = await self._cascade.remove_user_from_all_leaderboards(user_id)
        deleted = await self._store.delete_user(user_id)

        result = AccountDeletionResult(
            user_id=user_id,
            email=email,
            leaderboard_updates=summary,
            user_record_deleted=deleted is not None,
        )

        log = self.log.warning if summary.failed else self.log.info
        log(
            "Account deleted",
            extra={
                "user_id": user_id,
                "leaderboards_total": summary.total,
                "leaderboards_successful": summary.successful,
                "leaderboards_failed": summary.failed,
                "failed_quest_ids": summary.failed_quest_ids,
            },
        )
        return result

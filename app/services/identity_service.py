"""
Firebase identity verification for the federated signup/login flow.
"""

import asyncio
import logging
from functools import lru_cache
from typing import Any, Optional

from app.config import settings

logger = logging.getLogger(__name__)


class IdentityVerificationError(Exception):
    """The identity token could not be verified."""


class FirebaseIdentityVerifier:
    """Verifies Firebase ID tokens and removes Firebase accounts."""

    APP_NAME = "nanocart"

    def __init__(self, project_id: str, credentials_file: Optional[str] = None):
        self.project_id = project_id
        self.credentials_file = credentials_file
        self._app = None

    def _get_app(self):
        if self._app is None:
            import firebase_admin
            from firebase_admin import credentials

            try:
                self._app = firebase_admin.get_app(self.APP_NAME)
            except ValueError:
                cred = (
                    credentials.Certificate(self.credentials_file)
                    if self.credentials_file
                    else credentials.ApplicationDefault()
                )
                options = {"projectId": self.project_id} if self.project_id else None
                self._app = firebase_admin.initialize_app(cred, options, name=self.APP_NAME)
        return self._app

    async def verify(self, id_token: str) -> dict[str, Any]:
        """
        Return the decoded token claims (``uid``, ``phone_number``...).

        Raises:
            IdentityVerificationError: token is invalid, expired or revoked
        """
        from firebase_admin import auth as firebase_auth

        try:
            return await asyncio.to_thread(
                firebase_auth.verify_id_token, id_token, self._get_app()
            )
        except (ValueError, firebase_auth.InvalidIdTokenError) as e:
            raise IdentityVerificationError(str(e)) from e

    async def delete_account(self, uid: str) -> None:
        from firebase_admin import auth as firebase_auth

        await asyncio.to_thread(firebase_auth.delete_user, uid, self._get_app())


@lru_cache()
def get_identity_verifier() -> FirebaseIdentityVerifier:
    return FirebaseIdentityVerifier(
        project_id=settings.FIREBASE_PROJECT_ID,
        credentials_file=settings.FIREBASE_CREDENTIALS_FILE,
    )

"""
Narrow capability over Supabase Auth's admin API.

Only this class holds the service-role client; services ask it for
``get_email(user_id)`` and ``find_by_email(email)`` and never see the
elevated client themselves.
"""

import logging
from typing import Optional

from supabase import Client

logger = logging.getLogger(__name__)

_LIST_USERS_PAGE_SIZE = 1000


class UserDirectory:
    def __init__(self, admin_client: Client):
        self.admin_client = admin_client

    def get_email(self, user_id: str) -> Optional[str]:
        """Return the user's email, or None if the lookup fails."""
        try:
            response = self.admin_client.auth.admin.get_user_by_id(user_id)
        except Exception as e:
            logger.warning(f"User lookup failed for {user_id}: {e}")
            return None
        user = getattr(response, "user", None)
        if not user or not user.email:
            return None
        return user.email

    def find_by_email(self, email: str) -> Optional[str]:
        """Return the id of the user registered with ``email`` (case-insensitive)."""
        target = email.strip().lower()
        page = 1
        while True:
            try:
                users = self.admin_client.auth.admin.list_users(page=page, per_page=_LIST_USERS_PAGE_SIZE)
            except Exception as e:
                logger.warning(f"User search by email failed: {e}")
                return None
            for user in users or []:
                if user.email and user.email.lower() == target:
                    return user.id
            if not users or len(users) < _LIST_USERS_PAGE_SIZE:
                return None
            page += 1

from typing import Dict, Iterable, Optional
from sqlalchemy import select
from .models import AsyncSessionLocal
from .models.users import User


def format_display_name(user: Optional[User]) -> str:
    if user is None:
        return 'Someone'
    full_name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return full_name or user.email or 'Someone'


class ProfileDirectory:
    """Read-only view of the users table used by the messaging core"""

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self.session_factory() as session:
            q = await session.execute(select(User).where(User.id == user_id))
            return q.scalars().first()

    async def is_eligible_receiver(self, user_id: int) -> bool:
        user = await self.get_user(user_id)
        return bool(user and user.profile_active and user.id_verified)

    async def display_name(self, user_id: int) -> str:
        return format_display_name(await self.get_user(user_id))

    async def display_names(self, user_ids: Iterable[int]) -> Dict[int, str]:
        ids = set(user_ids)
        if not ids:
            return {}
        async with self.session_factory() as session:
            q = await session.execute(select(User).where(User.id.in_(ids)))
            users = {u.id: u for u in q.scalars().all()}
        return {uid: format_display_name(users.get(uid)) for uid in ids}

    async def summary(self, user_id: int) -> Optional[dict]:
        user = await self.get_user(user_id)
        if not user:
            return None
        return {
            'id': user.id,
            'display_name': format_display_name(user),
            'id_verified': bool(user.id_verified),
        }

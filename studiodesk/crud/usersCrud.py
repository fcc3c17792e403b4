import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from studiodesk.models.userModel import People, PersonRole

logger = logging.getLogger(__name__)

# Highest privilege first
ROLE_PRECEDENCE = ["admin", "staff", "coach", "trainer", "member"]


def person_payload(person: Optional[People]) -> Optional[Dict[str, Any]]:
    """Coach/customer shape shared by every calendar payload"""
    if person is None:
        return None
    return {
        "id": person.id,
        "first_name": person.first_name,
        "last_name": person.last_name,
        "full_name": person.full_name,
    }


def primary_role_code(role_codes: List[str]) -> Optional[str]:
    codes = [code.lower() for code in role_codes if code]
    for code in ROLE_PRECEDENCE:
        if code in codes:
            return code
    return codes[0] if codes else None


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[Dict[str, Any]]:
    result = await db.execute(
        select(People)
        .options(selectinload(People.roles).selectinload(PersonRole.role))
        .where(People.id == user_id, People.deleted_at.is_(None))
    )
    person = result.scalar_one_or_none()
    if person is None:
        return None

    role_codes = [person_role.role.code for person_role in person.roles if person_role.role]
    payload = person_payload(person)
    payload.update({
        "email": person.email,
        "roles": role_codes,
        "role": primary_role_code(role_codes),
    })
    return payload

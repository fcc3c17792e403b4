import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.fastapi import BaseContext

from studiodesk.auth.jwt import verify_token
from studiodesk.core.conversions import coerce_int
from studiodesk.crud.usersCrud import get_user_by_id
from studiodesk.db.postgresql import get_db
from studiodesk.scheduling.status import ViewerRole, parse_viewer_role
from studiodesk.services.booking_mutations import BookingMutationService
from studiodesk.services.calendar_feed import CalendarFeedService
from studiodesk.services.collection_cache import CollectionCache
from studiodesk.services.notifications import NotificationCenter
from studiodesk.services.scheduling_gateway import SchedulingGateway

logger = logging.getLogger(__name__)

# Shared by every request of this process; entries expire after CACHE_TTL_SECONDS
collection_cache = CollectionCache()


@dataclass
class Context(BaseContext):
    db: Optional[AsyncSession] = None
    request: Optional[Request] = None
    response: Optional[Response] = None
    user: Optional[Dict[str, Any]] = None
    gateway: Any = None
    cache: CollectionCache = field(default_factory=lambda: collection_cache)
    notifications: NotificationCenter = field(default_factory=NotificationCenter)

    @property
    def viewer_role(self) -> ViewerRole:
        return parse_viewer_role((self.user or {}).get("role"))

    @property
    def viewer_id(self) -> Optional[int]:
        return coerce_int((self.user or {}).get("id"))

    @property
    def mutations(self) -> BookingMutationService:
        return BookingMutationService(
            self.gateway, self.cache, self.notifications, self.viewer_role, self.viewer_id
        )

    @property
    def calendar_feed(self) -> CalendarFeedService:
        return CalendarFeedService(self.gateway, self.cache)


async def build_context(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> Context:
    user = None
    access_token = request.headers.get("x-access-token")

    if access_token:
        payload = verify_token(access_token)
        if payload:
            user_id = coerce_int(payload.get("user_id"))
            if user_id is not None:
                user = await get_user_by_id(db, user_id)
                if user is None:
                    logger.warning("Token references unknown user %s", user_id)

    return Context(db=db, request=request, response=response, user=user, gateway=SchedulingGateway(db))

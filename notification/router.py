"""Channel selection from merged preferences and a routing entry."""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

from notification.types import ChannelRoute, NotificationPriority


@dataclass(frozen=True)
class ChannelSelection:
    in_app: bool = True
    email: bool = False
    sms: bool = False
    push: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)

    def outbound(self) -> Dict[str, bool]:
        return {'email': self.email, 'sms': self.sms, 'push': self.push}


ALL_CHANNELS = ChannelSelection(in_app=True, email=True, sms=True, push=True)
IN_APP_ONLY = ChannelSelection()


def resolve_channels(
    preferences: Dict[str, Dict[str, bool]],
    route: ChannelRoute,
    priority: Optional[NotificationPriority] = None,
    force_all: bool = False
) -> ChannelSelection:
    """
    Decide which channels are enabled for one notification.

    `preferences` must already be merged over the defaults. `priority` is
    accepted for parity with the dispatch call but does not change the
    selection.
    """
    if force_all:
        return ALL_CHANNELS

    email = preferences.get('email') or {}
    sms = preferences.get('sms') or {}
    push = preferences.get('push') or {}
    category = route.category.value

    return ChannelSelection(
        in_app=True,
        email=bool(email.get('enabled') and email.get(category)),
        sms=bool(
            sms.get('enabled')
            and route.sms_category is not None
            and sms.get(route.sms_category.value)
        ),
        push=bool(push.get('enabled') and push.get(category)),
    )

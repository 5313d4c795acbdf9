"""Lookup of payload adapters by platform name."""

from typing import Dict, List

from orderhub.core.errors import NotFound
from orderhub.services.delivery.base import PlatformAdapter
from orderhub.services.delivery.rapido import RapidoAdapter
from orderhub.services.delivery.swiggy import SwiggyAdapter
from orderhub.services.delivery.zomato import ZomatoAdapter

ADAPTERS: Dict[str, PlatformAdapter] = {
    adapter.platform_name: adapter
    for adapter in (SwiggyAdapter(), ZomatoAdapter(), RapidoAdapter())
}


def get_adapter(platform: str) -> PlatformAdapter:
    adapter = ADAPTERS.get(platform.lower())
    if adapter is None:
        raise NotFound("Platform", platform)
    return adapter


def supported_platforms() -> List[str]:
    return sorted(ADAPTERS)

import ipaddress
import logging

import requests
from flask import current_app, request

logger = logging.getLogger(__name__)

IPINFO_URL = "https://ipinfo.io/{ip}/json"


def client_ip():
    """Peer address; proxy hops are unwrapped by ``ProxyFix`` in the app factory."""
    return request.remote_addr


def _is_routable(ip):
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return not (addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved)


def lookup_ip(ip):
    """Best-effort geolocation for ``ip``; returns ``None`` on any failure."""
    if not ip or not current_app.config.get("GEO_LOOKUP_ENABLED"):
        return None
    if not _is_routable(ip):
        return None

    params = {}
    token = current_app.config.get("IPINFO_TOKEN")
    if token:
        params["token"] = token

    try:
        res = requests.get(
            IPINFO_URL.format(ip=ip),
            params=params,
            timeout=current_app.config.get("GEO_LOOKUP_TIMEOUT", 3),
        )
        res.raise_for_status()
        data = res.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Geo lookup failed for %s: %s", ip, exc)
        return None

    return {
        "city": data.get("city"),
        "region": data.get("region"),
        "country": data.get("country"),
        "org": data.get("org"),
        "coordinates": data.get("loc"),
    }

# taskboard/profile.py
import html
import logging
from typing import List, Optional
from urllib.parse import quote

import requests

from .config import HTTP_TIMEOUT, PROFILE_PIC_BASE, PROFILE_PIC_EXTENSIONS
from .utils import initials

logger = logging.getLogger(__name__)


def picture_candidates(username: str, base: str = PROFILE_PIC_BASE) -> List[str]:
    """<base>/<username>.png, .jpg, .jpeg in that order"""
    name = quote(str(username).strip())
    return [f"{base.rstrip('/')}/{name}.{ext}" for ext in PROFILE_PIC_EXTENSIONS]


def resolve_picture(
    username: str,
    session: Optional[requests.Session] = None,
    base: str = PROFILE_PIC_BASE,
    timeout: float = HTTP_TIMEOUT,
) -> Optional[str]:
    """First candidate URL that answers 2xx; None -> caller shows the initials fallback."""
    http = session if session is not None else requests.Session()
    for url in picture_candidates(username, base):
        try:
            response = http.head(url, timeout=timeout, allow_redirects=True)
        except requests.RequestException as e:
            logger.debug("profile picture %s unreachable: %s", url, e)
            continue
        if response.ok:
            return url
    return None


def initials_avatar(full_name, username, size: int = 64) -> str:
    """Round HTML badge with the user's initials, shown when no picture resolves"""
    return (
        f"<div style='width:{size}px;height:{size}px;border-radius:50%;background:#4a6fa5;color:#fff;"
        f"display:flex;align-items:center;justify-content:center;font-size:{size // 3}px;'>"
        f"{html.escape(initials(full_name, username))}</div>"
    )

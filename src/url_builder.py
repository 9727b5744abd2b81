"""
Listing URL construction for Computrabajo searches
"""

import re
from urllib.parse import urlparse

from models import SearchInput

DEFAULT_COUNTRY = "ar"
DEFAULT_QUERY = "administracion-y-oficina"


def slugify(text: str) -> str:
    """Lowercase and replace whitespace runs with '-'"""
    return re.sub(r"\s+", "-", (text or "").strip().lower())


def build_search_url(search: SearchInput) -> str:
    """Build the first listing URL; an explicit URL always wins"""
    if search.url and search.url.strip():
        return search.url.strip()

    country = (search.country or DEFAULT_COUNTRY).strip().lower()
    query = slugify(search.query) or DEFAULT_QUERY
    url = f"https://{country}.computrabajo.com/empleos-de-{query}"

    location = slugify(search.location)
    if location:
        url += f"-en-{location}"

    return url


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"

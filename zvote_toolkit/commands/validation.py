from typing import List
from urllib.parse import urlparse

from zvote_toolkit.election.models import Election


def validate_vote_address(
    election: Election, address: str, delegate: bool = False
) -> str:
    """Validate a vote destination; a candidate unless delegating"""
    if not address or not isinstance(address, str):
        raise ValueError("Invalid address: must be a non-empty string")
    address = address.strip()
    if not delegate and election.candidate_index(address) is None:
        choices = ", ".join(c.label for c in election.candidates)
        raise ValueError(
            f"Invalid address: {address} is not a candidate (choices: {choices})"
        )
    return address


def validate_amount(amount: int) -> int:
    """Validate a vote amount in zatoshis"""
    if amount <= 0:
        raise ValueError(f"Invalid amount: {amount}. Must be positive")
    return amount


def validate_urls(urls: str) -> List[str]:
    """Validate and split a comma separated list of mirror URLs"""
    result = [u.strip().rstrip("/") for u in urls.split(",") if u.strip()]
    if not result:
        raise ValueError("Invalid urls: at least one mirror URL is required")
    for url in result:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid url: {url}. Must be http(s)://host[/path]")
    return result

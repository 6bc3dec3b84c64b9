import ipaddress


def validate_password(password: str) -> bool:
    """Any non-empty password is accepted locally; policy lives in the backend."""
    return bool(password)


def validate_port(value) -> bool:
    """
    Accepts an int or a decimal string.
    Range: 1-65535
    """
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        return False
    return 1 <= port <= 65535


def validate_ip_address(address: str, ip_version: str = None) -> bool:
    """
    Checks that `address` is an IP literal, optionally of the given
    version ("ipv4" or "ipv6"). Host names are not accepted.
    """
    if not address:
        return False
    try:
        parsed = ipaddress.ip_address(address.strip())
    except ValueError:
        return False
    if ip_version is None:
        return True
    return parsed.version == (6 if ip_version == "ipv6" else 4)


def validate_peer_query(query: str) -> bool:
    if not query:
        return False
    return not any(ch.isspace() for ch in query.strip())

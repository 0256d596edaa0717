"""Utilities for handling FastAPI requests."""

from fastapi import Request


def get_client_ip(request: Request) -> str:
    """Extract client IP address with proxy support.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address as string. Returns "unknown" if unable to determine.

    Notes:
        - Checks X-Forwarded-For header first (for load balancers/proxies)
        - Falls back to X-Real-IP header (for nginx proxy)
        - Finally uses request.client.host (direct connection)
    """
    # Check X-Forwarded-For header (comma-separated list, first is original client)
    forwarded_for: str | None = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    # Check X-Real-IP header (single IP, set by nginx and similar proxies)
    real_ip: str | None = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    # Fall back to direct client connection
    if request.client and request.client.host:
        return str(request.client.host)

    return "unknown"


async def get_form_or_query(request: Request) -> dict[str, list[str]]:
    """Merge query string and form body parameters, form values last.

    Report parameters may arrive either way: links and the confirmation
    prompt use GET, the bulk delete form uses POST.
    """
    merged: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        merged.setdefault(key, []).append(value)

    if request.method == "POST":
        form = await request.form()
        for key, value in form.multi_items():
            if isinstance(value, str):
                merged.setdefault(key, []).append(value)
    return merged

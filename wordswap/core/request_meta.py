from fastapi import Request


def _first_forwarded(value: object) -> str:
    if isinstance(value, str) and value.strip():
        return value.split(",")[0].strip()
    return ""


def extract_client_ip(request: Request) -> str:
    forwarded = _first_forwarded(request.headers.get("x-forwarded-for"))
    if forwarded:
        return forwarded
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def extract_client_ip_from_environ(environ: dict) -> str:
    """Same lookup as ``extract_client_ip`` for a Socket.IO WSGI/ASGI environ."""
    forwarded = _first_forwarded(environ.get("HTTP_X_FORWARDED_FOR"))
    if forwarded:
        return forwarded
    remote = environ.get("REMOTE_ADDR")
    if isinstance(remote, str) and remote.strip():
        return remote.strip()
    return "unknown"

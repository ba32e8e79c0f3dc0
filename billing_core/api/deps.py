"""API Dependencies"""

from typing import AsyncIterator
from fastapi import Request

from billing_core.services.backend_client import BackendClient


async def get_backend_client(request: Request) -> AsyncIterator[BackendClient]:
    """
    Backend client for the duration of one request.

    The request's correlation ID is forwarded so backend logs line up with ours.
    """
    client = BackendClient(correlation_id=getattr(request.state, "request_id", None))
    try:
        yield client
    finally:
        await client.aclose()

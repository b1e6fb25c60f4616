"""Request-scoped access to the service context."""

from fastapi import Request

from mapper.context import ServiceContext


def get_context(request: Request) -> ServiceContext:
    """The ServiceContext created at startup and stored on ``app.state``."""
    return request.app.state.context

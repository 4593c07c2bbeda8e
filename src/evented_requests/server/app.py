"""Demo server application.

Creates the Starlette ASGI application that answers user creation
requests over the push channel, the way an evented backend would.

Route organization:
- /health - Health check
- /api/user/ - Queue a user creation (result is pushed later)
- /ws - WebSocket push channel
- /event - SSE push channel
"""

import os

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route, WebSocketRoute

from .channel import BroadcastChannel
from .routes import health_routes, push_routes, user_routes

# Seconds between the acknowledgement and the pushed result
DEFAULT_DELAY = 3.0


def create_app(*, delay: float | None = None) -> Starlette:
    """Create the demo server application.

    Args:
        delay: Seconds before the outcome is pushed. Falls back to the
            EVENTED_DEMO_DELAY environment variable, then DEFAULT_DELAY.

    Returns:
        Configured Starlette application
    """
    if delay is None:
        delay = float(os.environ.get("EVENTED_DEMO_DELAY", DEFAULT_DELAY))

    routes: list[Route | WebSocketRoute] = []
    routes.extend(health_routes)
    routes.extend(user_routes)
    routes.extend(push_routes)

    # CORS middleware for local development
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["http://localhost:*", "http://127.0.0.1:*"],
            allow_methods=["*"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(routes=routes, middleware=middleware)
    app.state.channel = BroadcastChannel()
    app.state.delay = delay
    return app

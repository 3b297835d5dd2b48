"""
asgi.py -- The served ParkSpot app: JSON API plus HTML pages.

api/ and web/ never import each other. This module is where they meet: it
takes the FastAPI app from api.main and adds the web router to it.

It also owns the one error path that differs between the two: a rate-limited
HTML form gets the login page back, a rate-limited API call gets JSON.

Serve with:  uvicorn asgi:app --reload
"""

from fastapi import Request
from fastapi.responses import Response
from slowapi.errors import RateLimitExceeded

from api.main import app, rate_limit_handler
from web.routes import rate_limited_view
from web.routes import router as web_router

app.include_router(web_router, tags=["Web UI"])


@app.exception_handler(RateLimitExceeded)
async def rate_limited(request: Request, exc: RateLimitExceeded) -> Response:
    if request.url.path.startswith("/api/"):
        return await rate_limit_handler(request, exc)
    return rate_limited_view(request, exc)

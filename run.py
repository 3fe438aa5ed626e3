"""
Local entry point. In production run: uvicorn campus.app:app
"""

import uvicorn

from campus.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "campus.app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )

import uvicorn

from relay.core.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "relay.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
    )

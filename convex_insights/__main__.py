"""Run the service with uvicorn: python -m convex_insights"""
import uvicorn

from convex_insights.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "convex_insights.main:app",
        host=settings.app_host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()

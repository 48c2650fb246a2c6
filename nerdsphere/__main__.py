"""
Run the chat service with uvicorn: ``python -m nerdsphere``.
"""
import uvicorn

from nerdsphere.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "nerdsphere.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

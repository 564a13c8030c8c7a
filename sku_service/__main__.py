import uvicorn

from sku_service.core.config import settings
from sku_service.core.logs import logging_config


def main():
    uvicorn.run(
        "sku_service.main:app",
        host=settings.host,
        port=settings.port,
        log_config=logging_config(settings.log_level.upper()),
    )


if __name__ == "__main__":
    main()

import uvicorn

from agent_gateway.configs.settings import settings
from agent_gateway.server.app import app


def main():
    # log_config=None leaves logging to setup_logging() (JSON on stdout)
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()

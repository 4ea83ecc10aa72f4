"""VidTube entrypoint.

Run with:
  python -m vidtube
"""

import click
import uvicorn
from dotenv import load_dotenv


@click.command()
@click.option("--host", default=None, help="Bind address (defaults to HOST).")
@click.option("--port", default=None, type=int, help="Listen port (defaults to PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes (development).")
def main(host: str | None, port: int | None, reload: bool) -> None:
    """Serve the VidTube accounts API.

    Startup connects to the database first; if that fails uvicorn aborts
    and the process exits with a non-zero status.
    """
    load_dotenv()

    from vidtube.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "vidtube.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()

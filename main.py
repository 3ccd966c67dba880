"""Command-line entry point serving the TicketDesk API with uvicorn."""

import uvicorn

from ticketdesk.config import get_settings


def main():
    """Run the API server; auto-reload is on outside production."""
    settings = get_settings()
    uvicorn.run(
        "ticketdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment != "production",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

import asyncio
import sys
import logging

import aiohttp
from dotenv import load_dotenv

from repo_tracker.application.fetcher_service import MetadataFetcher
from repo_tracker.application.tracker_service import TrackerService
from repo_tracker.domain.exceptions import ConfigurationException, DatabaseException
from repo_tracker.infrastructure.catalogue import load_repositories
from repo_tracker.infrastructure.database import SqlRecordStore
from repo_tracker.infrastructure.github_client import GitHubRestClient
from repo_tracker.infrastructure.settings import Settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

async def main():
    # Load environment variables from .env file
    load_dotenv()

    try:
        settings = Settings.from_env()
        repositories = load_repositories(settings.repositories_file)
    except ConfigurationException as e:
        logger.error(str(e))
        sys.exit(1)

    if not settings.github_token:
        logger.warning("GITHUB_TOKEN is not set. Requests will be unauthenticated and heavily rate limited.")

    github_client = GitHubRestClient(
        token=settings.github_token,
        timeout=aiohttp.ClientTimeout(total=settings.request_timeout_seconds),
    )
    record_store = SqlRecordStore(db_url=settings.database_url)

    tracker_service = TrackerService(
        fetcher=MetadataFetcher(github_client, record_store, cache_ttl=settings.cache_ttl),
        record_store=record_store,
        repositories=repositories,
        html_output_path=settings.html_output_path,
        markdown_output_path=settings.markdown_output_path,
        max_concurrent_fetches=settings.max_concurrent_fetches,
    )

    try:
        try:
            await record_store.initialize()
        except DatabaseException as e:
            # Every store call degrades on its own; the reports then only hold this run's results
            logger.error(f"Record store unavailable: {e}. Continuing without persistence.")
        await tracker_service.run()
    except KeyboardInterrupt:
        logger.info("Run interrupted by user. Exiting gracefully.")
    finally:
        await record_store.close()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()

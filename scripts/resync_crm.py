#!/usr/bin/env python3
"""Push deals that never reached Pipedrive.

Walks every deal without a CRM id, creates the missing Pipedrive person and
deal, and pushes the custom fields of configured deals. One attempt per deal;
failures are logged and left for the next run. Run from repo root with .env
(NEO4J_* and PIPEDRIVE_*). Safe to repeat.
"""
import logging
import sys
from functools import partial
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from dotenv import load_dotenv  # noqa: E402
from neo4j import GraphDatabase  # noqa: E402

from leadintake.application import DealService  # noqa: E402
from leadintake.infrastructure import (  # noqa: E402
    Neo4jContactRepository,
    Neo4jDealRepository,
    PipedriveGateway,
)
from leadintake.infrastructure.config import (  # noqa: E402
    Neo4jSettings,
    PipedriveSettings,
    default_phone_region,
)
from leadintake.infrastructure.phone import normalize_phone  # noqa: E402

load_dotenv(REPO_ROOT / ".env")

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)


def main() -> int:
    pipedrive = PipedriveSettings.from_env()
    if not pipedrive.api_token:
        print("PIPEDRIVE_API_TOKEN is not set; nothing to do.")
        return 1
    settings = Neo4jSettings.from_env()
    driver = GraphDatabase.driver(settings.uri, auth=(settings.user, settings.password))
    crm = PipedriveGateway(pipedrive)
    try:
        service = DealService(
            Neo4jDealRepository(driver),
            Neo4jContactRepository(driver),
            crm=crm,
            normalize_phone=partial(normalize_phone, default_region=default_phone_region()),
        )
        synced = service.resync_unsynced()
        print(f"Linked {synced} deal(s) to Pipedrive")
        return 0
    finally:
        crm.close()
        driver.close()


if __name__ == "__main__":
    sys.exit(main())

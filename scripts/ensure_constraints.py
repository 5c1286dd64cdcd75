#!/usr/bin/env python3
"""Create the Neo4j constraints and indexes the deal and contact stores rely on.

Unique ids for Deal and Contact, one active Contact per phone, one PhoneLock
per phone, and an index on Deal.phone_number. Run from repo root with .env
(NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD). Idempotent.
"""
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from dotenv import load_dotenv  # noqa: E402
from neo4j import GraphDatabase  # noqa: E402

from leadintake.infrastructure.config import Neo4jSettings  # noqa: E402
from leadintake.infrastructure.persistence.neo4j_repository import (  # noqa: E402
    ensure_constraints,
)

load_dotenv(REPO_ROOT / ".env")

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)


def main() -> int:
    settings = Neo4jSettings.from_env()
    driver = GraphDatabase.driver(settings.uri, auth=(settings.user, settings.password))
    try:
        ensure_constraints(driver)
        print(f"Constraints ensured on {settings.uri}")
        return 0
    finally:
        driver.close()


if __name__ == "__main__":
    sys.exit(main())

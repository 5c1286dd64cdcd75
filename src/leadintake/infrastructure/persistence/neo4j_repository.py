"""Neo4j implementations of ContactRepository and DealRepository.

Graph: (c:Contact)-[:HAS_DEAL]->(d:Deal). Contact.active_phone is uniquely
constrained and only set on non-deleted contacts, so MERGE on it is the
get-or-create. Placeholder initialization first writes a (:PhoneLock) node for
the phone number; Neo4j serializes transactions writing the same node, so two
concurrent initializations for one phone cannot both create a deal.
Dates and timestamps are ISO strings, amounts are decimal strings.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal

from neo4j.exceptions import DriverError, Neo4jError

from leadintake.application.errors import PersistenceError
from leadintake.domain import Contact, Deal, DealState

_CONSTRAINT_QUERIES = (
    "CREATE CONSTRAINT deal_id_unique IF NOT EXISTS FOR (d:Deal) REQUIRE d.id IS UNIQUE",
    "CREATE CONSTRAINT contact_id_unique IF NOT EXISTS FOR (c:Contact) REQUIRE c.id IS UNIQUE",
    """
    CREATE CONSTRAINT contact_active_phone_unique IF NOT EXISTS
    FOR (c:Contact) REQUIRE c.active_phone IS UNIQUE
    """,
    """
    CREATE CONSTRAINT phone_lock_unique IF NOT EXISTS
    FOR (l:PhoneLock) REQUIRE l.phone_number IS UNIQUE
    """,
    "CREATE INDEX deal_phone_number IF NOT EXISTS FOR (d:Deal) ON (d.phone_number)",
)

_LINK_CONTACT = """
MATCH (d:Deal {id: $deal_id})
MATCH (c:Contact {id: $contact_id})
MERGE (c)-[:HAS_DEAL]->(d)
"""

_DEAL_FIELDS = """
d.name = $name,
d.phone_number = $phone_number,
d.category = $category,
d.event_date = $event_date,
d.venue = $venue,
d.budget = $budget,
d.value = $value,
d.expected_gathering = $expected_gathering,
d.state = $state,
d.contact_id = coalesce(d.contact_id, $contact_id),
d.remote_deal_id = coalesce(d.remote_deal_id, $remote_deal_id),
d.updated_at = $updated_at
"""


def _date_to_iso(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _iso_to_date(s: str | None) -> date | None:
    return date.fromisoformat(s) if s else None


def _iso_to_datetime(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _decimal_or_none(s: str | None) -> Decimal | None:
    return Decimal(s) if s is not None else None


@contextmanager
def _session(driver) -> Iterator[object]:
    """Open a session; driver and database errors become PersistenceError."""
    try:
        with driver.session() as session:
            yield session
    except (Neo4jError, DriverError) as e:
        raise PersistenceError(f"Neo4j operation failed: {e}") from e


def ensure_constraints(driver) -> None:
    """Create the unique constraints and indexes if missing. Idempotent."""
    with _session(driver) as session:
        for query in _CONSTRAINT_QUERIES:
            session.run(query)


def _deal_params(deal: Deal) -> dict:
    return {
        "id": deal.id,
        "name": deal.name,
        "phone_number": deal.phone_number,
        "category": deal.category,
        "event_date": _date_to_iso(deal.event_date),
        "venue": deal.venue,
        "budget": str(deal.budget) if deal.budget is not None else None,
        "value": str(deal.value),
        "expected_gathering": deal.expected_gathering,
        "state": deal.state.value,
        "remote_deal_id": deal.remote_deal_id,
        "contact_id": deal.contact_id,
        "created_at": deal.created_at.isoformat(),
        "updated_at": deal.updated_at.isoformat(),
    }


def _node_to_deal(node) -> Deal:
    return Deal(
        id=node["id"],
        name=node["name"],
        phone_number=node["phone_number"],
        category=node["category"],
        event_date=_iso_to_date(node.get("event_date")),
        venue=node.get("venue"),
        budget=_decimal_or_none(node.get("budget")),
        expected_gathering=node.get("expected_gathering"),
        value=Decimal(node.get("value") or "0"),
        state=DealState(node["state"]),
        remote_deal_id=node.get("remote_deal_id"),
        contact_id=node.get("contact_id"),
        created_at=_iso_to_datetime(node["created_at"]),
        updated_at=_iso_to_datetime(node["updated_at"]),
    )


def _node_to_contact(node) -> Contact:
    return Contact(
        id=node["id"],
        name=node["name"],
        phone_number=node["phone_number"],
        remote_contact_id=node.get("remote_contact_id"),
        venue=node.get("venue"),
        event_date=_iso_to_date(node.get("event_date")),
        deleted=bool(node.get("deleted", False)),
        created_at=_iso_to_datetime(node["created_at"]),
        updated_at=_iso_to_datetime(node["updated_at"]),
    )


class Neo4jContactRepository:
    """Stores contacts as (:Contact) nodes, unique by active_phone."""

    def __init__(self, driver: object) -> None:
        self._driver = driver

    def _single(self, query: str, **params) -> Contact | None:
        with _session(self._driver) as session:
            record = session.run(query, **params).single()
        if not record:
            return None
        return _node_to_contact(record["c"])

    def get_by_id(self, contact_id: str) -> Contact | None:
        return self._single("MATCH (c:Contact {id: $id}) RETURN c", id=contact_id)

    def find_by_phone(self, phone_number: str) -> Contact | None:
        return self._single(
            """
            MATCH (c:Contact {active_phone: $phone})
            WHERE coalesce(c.deleted, false) = false
            RETURN c
            LIMIT 1
            """,
            phone=phone_number,
        )

    def get_or_create(self, contact: Contact) -> tuple[Contact, bool]:
        with _session(self._driver) as session:
            record = session.execute_write(
                lambda tx: tx.run(
                    """
                    MERGE (c:Contact {active_phone: $phone_number})
                    ON CREATE SET
                        c.id = $id,
                        c.name = $name,
                        c.phone_number = $phone_number,
                        c.remote_contact_id = $remote_contact_id,
                        c.venue = $venue,
                        c.event_date = $event_date,
                        c.deleted = false,
                        c.created_at = $created_at,
                        c.updated_at = $updated_at
                    RETURN c, c.id = $id AS created
                    """,
                    id=contact.id,
                    name=contact.name,
                    phone_number=contact.phone_number,
                    remote_contact_id=contact.remote_contact_id,
                    venue=contact.venue,
                    event_date=_date_to_iso(contact.event_date),
                    created_at=contact.created_at.isoformat(),
                    updated_at=contact.updated_at.isoformat(),
                ).single()
            )
        return _node_to_contact(record["c"]), bool(record["created"])

    def update_name(
        self, contact_id: str, name: str, updated_at: datetime
    ) -> Contact | None:
        return self._single(
            """
            MATCH (c:Contact {id: $id})
            SET c.name = $name, c.updated_at = $updated_at
            RETURN c
            """,
            id=contact_id,
            name=name,
            updated_at=updated_at.isoformat(),
        )

    def set_remote_id(self, contact_id: str, remote_contact_id: str) -> Contact | None:
        return self._single(
            """
            MATCH (c:Contact {id: $id})
            SET c.remote_contact_id = $remote_contact_id
            RETURN c
            """,
            id=contact_id,
            remote_contact_id=remote_contact_id,
        )


class Neo4jDealRepository:
    """Stores deals as (:Deal) nodes linked from their (:Contact)."""

    def __init__(self, driver: object) -> None:
        self._driver = driver

    def _list(self, where: str = "", **params) -> list[Deal]:
        with _session(self._driver) as session:
            result = session.run(
                f"MATCH (d:Deal) {where} RETURN d ORDER BY d.created_at, d.id", **params
            )
            return [_node_to_deal(rec["d"]) for rec in result]

    def _single(self, query: str, *, link_contact: bool = False, **params) -> Deal | None:
        with _session(self._driver) as session:
            record = session.run(query, **params).single()
            if record and link_contact and record["d"].get("contact_id"):
                session.run(
                    _LINK_CONTACT,
                    deal_id=record["d"]["id"],
                    contact_id=record["d"]["contact_id"],
                )
        if not record:
            return None
        return _node_to_deal(record["d"])

    @staticmethod
    def _create(tx, deal: Deal) -> None:
        tx.run("CREATE (d:Deal) SET d = $props", props=_deal_params(deal))
        if deal.contact_id:
            tx.run(_LINK_CONTACT, deal_id=deal.id, contact_id=deal.contact_id)

    def add(self, deal: Deal) -> None:
        with _session(self._driver) as session:
            session.execute_write(self._create, deal)

    def add_many(self, deals: list[Deal]) -> None:
        def work(tx) -> None:
            for deal in deals:
                self._create(tx, deal)

        with _session(self._driver) as session:
            session.execute_write(work)

    def get_by_id(self, deal_id: str) -> Deal | None:
        return self._single("MATCH (d:Deal {id: $id}) RETURN d", id=deal_id)

    def list_all(self) -> list[Deal]:
        return self._list()

    def list_by_phone(self, phone_number: str) -> list[Deal]:
        return self._list("WHERE d.phone_number = $value", value=phone_number)

    def list_by_name(self, name: str) -> list[Deal]:
        return self._list("WHERE d.name = $value", value=name)

    def list_by_category(self, category: str) -> list[Deal]:
        return self._list("WHERE d.category = $value", value=category)

    def list_without_remote_id(self) -> list[Deal]:
        return self._list("WHERE d.remote_deal_id IS NULL")

    def initialize_or_touch(self, placeholder: Deal) -> tuple[Deal, bool]:
        def work(tx) -> tuple[Deal, bool]:
            tx.run(
                """
                MERGE (l:PhoneLock {phone_number: $phone})
                SET l.locked_at = $now
                """,
                phone=placeholder.phone_number,
                now=placeholder.updated_at.isoformat(),
            )
            record = tx.run(
                """
                MATCH (d:Deal {phone_number: $phone})
                RETURN d
                ORDER BY d.created_at, d.id
                LIMIT 1
                """,
                phone=placeholder.phone_number,
            ).single()
            if record is None:
                self._create(tx, placeholder)
                return placeholder, True
            existing = _node_to_deal(record["d"]).touched()
            contact_id = existing.contact_id or placeholder.contact_id
            record = tx.run(
                """
                MATCH (d:Deal {id: $id})
                SET d.updated_at = $updated_at, d.contact_id = $contact_id
                RETURN d
                """,
                id=existing.id,
                updated_at=existing.updated_at.isoformat(),
                contact_id=contact_id,
            ).single()
            if contact_id:
                tx.run(_LINK_CONTACT, deal_id=existing.id, contact_id=contact_id)
            return _node_to_deal(record["d"]), False

        with _session(self._driver) as session:
            return session.execute_write(work)

    def promote(self, deal: Deal) -> Deal | None:
        params = _deal_params(deal)
        return self._single(
            f"""
            MATCH (d:Deal {{id: $id}})
            WHERE d.state = '{DealState.PLACEHOLDER.value}'
            SET {_DEAL_FIELDS}
            RETURN d
            """,
            link_contact=True,
            **params,
        )

    def replace(self, deal: Deal) -> Deal | None:
        params = _deal_params(deal)
        return self._single(
            f"""
            MATCH (d:Deal {{id: $id}})
            SET {_DEAL_FIELDS}
            RETURN d
            """,
            link_contact=True,
            **params,
        )

    def set_remote_id(self, deal_id: str, remote_deal_id: str) -> Deal | None:
        return self._single(
            """
            MATCH (d:Deal {id: $id})
            SET d.remote_deal_id = coalesce(d.remote_deal_id, $remote_deal_id)
            RETURN d
            """,
            id=deal_id,
            remote_deal_id=remote_deal_id,
        )

    def _delete(self, query: str, **params) -> int:
        with _session(self._driver) as session:
            record = session.run(query, **params).single()
        return int(record["deleted"]) if record else 0

    def delete(self, deal_id: str) -> bool:
        return (
            self._delete(
                "MATCH (d:Deal {id: $id}) DETACH DELETE d RETURN count(d) AS deleted",
                id=deal_id,
            )
            > 0
        )

    def delete_by_name(self, name: str) -> int:
        return self._delete(
            "MATCH (d:Deal {name: $name}) DETACH DELETE d RETURN count(d) AS deleted",
            name=name,
        )

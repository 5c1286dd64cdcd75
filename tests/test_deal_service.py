"""Unit tests for DealService. In-memory repositories with fake CRM and notifier."""

import threading
from datetime import date
from decimal import Decimal
from functools import partial

import pytest

from conftest import FakeCrm, FakeNotifier

from leadintake.application import (
    AlreadyConfigured,
    CategoryInput,
    DealFilter,
    DealInitialized,
    DealNotFound,
    DealService,
    DealsCreated,
    Invalid,
    PersistenceError,
)
from leadintake.domain import PLACEHOLDER_NAME, DealState
from leadintake.infrastructure import InMemoryContactRepository, InMemoryDealRepository
from leadintake.infrastructure.phone import normalize_phone


def test_bulk_create_amee_two_categories(service, crm, contacts_repo):
    result = service.create_deals(
        "Amee",
        "+15550001",
        [
            CategoryInput(
                name="Photography",
                event_date=date(2025, 6, 1),
                venue="Hall A",
                budget=2000,
                expected_gathering=50,
            ),
            CategoryInput(
                name="Makeup",
                event_date=date(2025, 6, 1),
                venue="Hall A",
                budget=800,
                expected_gathering=50,
            ),
        ],
    )

    assert isinstance(result, DealsCreated)
    assert result.message == "Successfully created 2 deal(s) for user Amee"
    assert [d.category for d in result.deals] == ["Photography", "Makeup"]
    assert [d.value for d in result.deals] == [Decimal("2000"), Decimal("800")]
    assert all(d.event_date == date(2025, 6, 1) and d.venue == "Hall A" for d in result.deals)
    assert all(d.expected_gathering == 50 for d in result.deals)
    assert all(d.phone_number == "+15550001" for d in result.deals)
    assert all(d.remote_deal_id is None for d in result.deals)
    assert crm.calls == []
    contact = contacts_repo.find_by_phone("+15550001")
    assert contact.name == "Amee"
    assert all(d.contact_id == contact.id for d in result.deals)


def test_create_deals_validation():
    service = DealService(InMemoryDealRepository(), InMemoryContactRepository())
    assert service.create_deals(" ", "+15550001", [CategoryInput(name="DJ")]) == Invalid(
        reason="Name is required."
    )
    assert isinstance(service.create_deals("Amee", "", [CategoryInput(name="DJ")]), Invalid)
    assert isinstance(service.create_deals("Amee", "+15550001", []), Invalid)
    negative = service.create_deals("Amee", "+15550001", [CategoryInput(name="DJ", budget=-5)])
    assert isinstance(negative, Invalid)
    assert "Budget" in negative.reason
    assert service.list_deals() == []


def test_initialize_new_phone_creates_placeholder_and_crm_records(service, crm, contacts_repo):
    result = service.initialize_deal("+15550002")

    assert isinstance(result, DealInitialized)
    assert result.created
    deal = service.get_deal(result.deal_id)
    assert deal.state is DealState.PLACEHOLDER
    assert deal.name == PLACEHOLDER_NAME
    assert deal.category == PLACEHOLDER_NAME
    assert deal.phone_number == "+15550002"
    assert deal.remote_deal_id == "deal-2"
    contact = contacts_repo.find_by_phone("+15550002")
    assert contact.name == PLACEHOLDER_NAME
    assert contact.remote_contact_id == "person-1"
    assert crm.calls == [
        ("create_contact", PLACEHOLDER_NAME, "+15550002"),
        ("create_deal", "person-1", "TBS Deal", Decimal(0)),
    ]


def test_initialize_twice_returns_same_deal(service, crm, contacts_repo):
    first = service.initialize_deal("+15550002")
    second = service.initialize_deal("+15550002")

    assert second.deal_id == first.deal_id
    assert not second.created
    assert len(service.list_deals()) == 1
    assert len(contacts_repo.list_all()) == 1
    assert len(crm.calls_to("create_contact")) == 1
    assert len(crm.calls_to("create_deal")) == 1


def test_initialize_requires_contact_number(service):
    assert service.initialize_deal("   ") == Invalid(reason="Contact number is required.")


def test_initialize_uses_normalized_phone():
    service = DealService(
        InMemoryDealRepository(),
        InMemoryContactRepository(),
        normalize_phone=partial(normalize_phone, default_region="US"),
    )
    first = service.initialize_deal("(202) 555-1234")
    second = service.initialize_deal("+1 202 555 1234")
    assert first.deal_id == second.deal_id
    assert service.get_deal(first.deal_id).phone_number == "+12025551234"


def test_two_phase_update_ravi_dj(service, crm, notifier, contacts_repo):
    init = service.initialize_deal("+15550003")

    promoted = service.update_deal_without_contact_number(
        init.deal_id,
        "Ravi",
        [
            CategoryInput(
                name="DJ",
                event_date=date(2025, 12, 1),
                venue="Grand Hall",
                budget=Decimal("800"),
                expected_gathering=200,
            )
        ],
    )

    assert promoted.id == init.deal_id
    assert promoted.state is DealState.CONFIGURED
    assert promoted.name == "Ravi"
    assert promoted.category == "DJ"
    assert promoted.value == Decimal("800")
    assert promoted.remote_deal_id == "deal-2"
    assert contacts_repo.find_by_phone("+15550003").name == "Ravi"
    assert crm.calls_to("rename_person") == [("rename_person", "person-1", "Ravi")]
    assert crm.calls_to("update_deal_fields") == [
        (
            "update_deal_fields",
            "deal-2",
            "DJ",
            date(2025, 12, 1),
            "Grand Hall",
            "Ravi",
            Decimal("800"),
        )
    ]
    assert notifier.sent == [("+15550003", "Ravi", ["DJ"], date(2025, 12, 1), "Grand Hall")]

    again = service.update_deal_without_contact_number(
        init.deal_id, "Ravi", [CategoryInput(name="DJ")]
    )
    assert again == AlreadyConfigured(deal_id=init.deal_id)
    assert len(notifier.sent) == 1


def test_two_phase_update_fans_out_extra_categories(service, crm, notifier):
    init = service.initialize_deal("+15550004")

    promoted = service.update_deal_without_contact_number(
        init.deal_id,
        "Priya",
        [
            CategoryInput(name="Photography", budget=1000),
            CategoryInput(name="Makeup", budget=300),
            CategoryInput(name="Decor"),
        ],
    )

    deals = service.list_deals(DealFilter(phone_number="+15550004"))
    assert [d.category for d in deals] == ["Photography", "Makeup", "Decor"]
    assert deals[0].id == promoted.id == init.deal_id
    assert all(d.state is DealState.CONFIGURED for d in deals)
    assert all(d.remote_deal_id for d in deals)
    assert [c[2] for c in crm.calls_to("create_deal")] == [
        "TBS Deal",
        "Priya - Makeup",
        "Priya - Decor",
    ]
    assert len(crm.calls_to("update_deal_fields")) == 3
    assert notifier.sent[0][2] == ["Photography", "Makeup", "Decor"]


def test_two_phase_update_unknown_deal(service):
    result = service.update_deal_without_contact_number(
        "missing", "Ravi", [CategoryInput(name="DJ")]
    )
    assert result == DealNotFound(deal_id="missing")


def test_two_phase_update_rejects_configured_deal(service):
    created = service.create_deals("Amee", "+15550001", [CategoryInput(name="Photography")])
    result = service.update_deal_without_contact_number(
        created.deals[0].id, "Amee", [CategoryInput(name="Makeup")]
    )
    assert result == AlreadyConfigured(deal_id=created.deals[0].id)


def test_two_phase_update_validation_before_lookup(service):
    init = service.initialize_deal("+15550003")
    assert isinstance(service.update_deal_without_contact_number(init.deal_id, "", [CategoryInput(name="DJ")]), Invalid)
    assert isinstance(service.update_deal_without_contact_number(init.deal_id, "Ravi", []), Invalid)
    assert service.get_deal(init.deal_id).is_placeholder


def test_crm_down_everything_still_succeeds(deals_repo, contacts_repo):
    crm, notifier = FakeCrm(fail=True), FakeNotifier()
    service = DealService(deals_repo, contacts_repo, crm=crm, notifier=notifier)

    init = service.initialize_deal("+15550005")
    assert init.created
    promoted = service.update_deal_without_contact_number(
        init.deal_id, "Ravi", [CategoryInput(name="DJ"), CategoryInput(name="Lights")]
    )

    assert promoted.state is DealState.CONFIGURED
    assert promoted.name == "Ravi"
    assert all(d.remote_deal_id is None for d in service.list_deals())
    assert len(service.list_deals()) == 2
    contact = contacts_repo.find_by_phone("+15550005")
    assert contact.name == "Ravi"
    assert contact.remote_contact_id is None
    assert crm.calls_to("create_deal") == []
    assert len(notifier.sent) == 1


def test_notification_failure_does_not_fail_update(deals_repo, contacts_repo, crm):
    service = DealService(deals_repo, contacts_repo, crm=crm, notifier=FakeNotifier(fail=True))
    init = service.initialize_deal("+15550006")
    promoted = service.update_deal_without_contact_number(
        init.deal_id, "Ravi", [CategoryInput(name="DJ")]
    )
    assert promoted.state is DealState.CONFIGURED


def test_update_deal_overwrites_without_crm(service, crm):
    created = service.create_deals("Amee", "+15550001", [CategoryInput(name="Photography")])
    deal_id = created.deals[0].id

    updated = service.update_deal(
        deal_id, "Amee K", "+15550007", [CategoryInput(name="Decor", budget=Decimal("75.5"))]
    )

    assert updated.id == deal_id
    assert updated.name == "Amee K"
    assert updated.phone_number == "+15550007"
    assert updated.budget == Decimal("75.5")
    assert updated.value == Decimal("75.5")
    assert crm.calls == []
    assert service.update_deal("missing", "X", "+1", [CategoryInput(name="DJ")]) == DealNotFound(
        deal_id="missing"
    )


def test_list_and_delete(service):
    service.create_deals("Amee", "+15550001", [CategoryInput(name="Photography"), CategoryInput(name="Makeup")])
    service.create_deals("Ravi", "+15550003", [CategoryInput(name="Makeup")])

    assert len(service.list_deals()) == 3
    assert len(service.list_deals(DealFilter(name="Amee"))) == 2
    assert len(service.list_deals(DealFilter(category="Makeup"))) == 2
    assert len(service.list_deals(DealFilter(name="Amee", category="Makeup"))) == 1
    assert service.list_deals(DealFilter(phone_number="+19999999")) == []

    ravi = service.list_deals(DealFilter(name="Ravi"))[0]
    assert service.delete_deal(ravi.id)
    assert not service.delete_deal(ravi.id)
    assert service.delete_deals_by_name("Amee") == 2
    assert service.list_deals() == []


def test_resync_links_deals_created_while_crm_was_down(deals_repo, contacts_repo):
    crm = FakeCrm(fail=True)
    service = DealService(deals_repo, contacts_repo, crm=crm)
    init = service.initialize_deal("+15550008")
    service.update_deal_without_contact_number(init.deal_id, "Ravi", [CategoryInput(name="DJ")])
    service.create_deals("Amee", "+15550001", [CategoryInput(name="Photography")])

    crm.fail = False
    crm.calls.clear()
    assert service.resync_unsynced() == 2

    assert all(d.remote_deal_id for d in service.list_deals())
    assert {c[1] for c in crm.calls_to("create_contact")} == {"Ravi", "Amee"}
    assert service.resync_unsynced() == 0


def test_concurrent_initialize_yields_one_deal_and_one_contact(deals_repo, contacts_repo):
    service = DealService(deals_repo, contacts_repo)
    workers = 8
    barrier = threading.Barrier(workers)
    results = []

    def run():
        barrier.wait()
        results.append(service.initialize_deal("+15550009"))

    threads = [threading.Thread(target=run) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({r.deal_id for r in results}) == 1
    assert sum(r.created for r in results) == 1
    assert len(deals_repo.list_all()) == 1
    assert len(contacts_repo.list_all()) == 1


def test_concurrent_details_promote_exactly_once(service, notifier):
    init = service.initialize_deal("+15550010")
    workers = 4
    barrier = threading.Barrier(workers)
    results = []

    def run():
        barrier.wait()
        results.append(
            service.update_deal_without_contact_number(
                init.deal_id, "Ravi", [CategoryInput(name="DJ")]
            )
        )

    threads = [threading.Thread(target=run) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(not isinstance(r, AlreadyConfigured) for r in results) == 1
    assert len(notifier.sent) == 1


class _StorageFailingDeals(InMemoryDealRepository):
    """Single-deal writes fail from the second one on; batch writes fail while `broken`."""

    def __init__(self) -> None:
        super().__init__()
        self.adds = 0
        self.batches = 0
        self.broken = False

    def add(self, deal):
        self.adds += 1
        if self.adds >= 2:
            raise PersistenceError("disk full")
        super().add(deal)

    def add_many(self, deals):
        self.batches += 1
        if self.broken:
            raise PersistenceError("disk full")
        super().add_many(deals)


def _amee_categories():
    return [
        CategoryInput(name="Photography", event_date=date(2025, 6, 1), venue="Hall A", budget=2000),
        CategoryInput(name="Makeup", event_date=date(2025, 6, 1), venue="Hall A", budget=800),
    ]


def test_bulk_create_writes_all_deals_in_one_batch(contacts_repo):
    deals = _StorageFailingDeals()
    service = DealService(deals, contacts_repo)

    result = service.create_deals("Amee", "+15550001", _amee_categories())

    assert len(result.deals) == 2
    assert deals.adds == 0
    assert deals.batches == 1
    assert len(deals.list_all()) == 2


def test_bulk_create_storage_failure_leaves_no_partial_deals(contacts_repo):
    deals = _StorageFailingDeals()
    deals.broken = True
    service = DealService(deals, contacts_repo)

    with pytest.raises(PersistenceError):
        service.create_deals("Amee", "+15550001", _amee_categories())
    assert deals.list_all() == []

    deals.broken = False
    service.create_deals("Amee", "+15550001", _amee_categories())
    assert [d.category for d in deals.list_all()] == ["Photography", "Makeup"]
    assert len(contacts_repo.list_all()) == 1


def test_fan_out_storage_failure_keeps_promotion_only(contacts_repo, crm):
    deals = _StorageFailingDeals()
    service = DealService(deals, contacts_repo, crm=crm)
    init = service.initialize_deal("+15550011")
    deals.broken = True

    with pytest.raises(PersistenceError):
        service.update_deal_without_contact_number(
            init.deal_id, "Ravi", [CategoryInput(name="DJ"), CategoryInput(name="Lights")]
        )

    stored = deals.list_all()
    assert [d.id for d in stored] == [init.deal_id]
    assert stored[0].state is DealState.CONFIGURED
    assert crm.calls_to("create_deal") == [("create_deal", "person-1", "TBS Deal", Decimal(0))]


def test_overlong_name_is_invalid(service):
    long_name = "x" * 101
    result = service.create_deals(long_name, "+15550001", [CategoryInput(name="DJ")])
    assert isinstance(result, Invalid)
    assert "at most 100" in result.reason
    init = service.initialize_deal("+15550012")
    assert isinstance(
        service.update_deal_without_contact_number(init.deal_id, long_name, [CategoryInput(name="DJ")]),
        Invalid,
    )
    assert service.get_deal(init.deal_id).is_placeholder
    assert len(service.list_deals()) == 1

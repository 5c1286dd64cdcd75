"""Shared fakes for the CRM and notifier ports, plus in-memory service fixtures."""

import itertools

import pytest

from leadintake.application import DealService, RemoteIntegrationError
from leadintake.infrastructure import InMemoryContactRepository, InMemoryDealRepository


class FakeCrm:
    """Records every call. With fail=True every call raises RemoteIntegrationError."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple] = []
        self._ids = itertools.count(1)

    def _record(self, *call) -> None:
        self.calls.append(call)
        if self.fail:
            raise RemoteIntegrationError(f"CRM down: {call[0]}")

    def calls_to(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]

    def create_contact(self, name, phone_number):
        self._record("create_contact", name, phone_number)
        return f"person-{next(self._ids)}"

    def create_deal(self, contact_ref, title, value):
        self._record("create_deal", contact_ref, title, value)
        return f"deal-{next(self._ids)}"

    def update_deal_fields(self, remote_deal_id, category, event_date, venue, full_name, budget):
        self._record(
            "update_deal_fields", remote_deal_id, category, event_date, venue, full_name, budget
        )

    def rename_person(self, remote_contact_id, new_name):
        self._record("rename_person", remote_contact_id, new_name)


class FakeNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple] = []

    def send_confirmation(self, phone_number, name, categories, event_date, venue):
        self.sent.append((phone_number, name, list(categories), event_date, venue))
        if self.fail:
            raise RemoteIntegrationError("WhatsApp down")


@pytest.fixture
def deals_repo():
    return InMemoryDealRepository()


@pytest.fixture
def contacts_repo():
    return InMemoryContactRepository()


@pytest.fixture
def crm():
    return FakeCrm()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def service(deals_repo, contacts_repo, crm, notifier):
    return DealService(deals_repo, contacts_repo, crm=crm, notifier=notifier)

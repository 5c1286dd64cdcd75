"""Errors raised by adapters behind the application ports."""


class RemoteIntegrationError(Exception):
    """A CRM or messaging call failed (transport, status, payload or missing config).

    Always caught where the call is made; never aborts local state.
    """


class PersistenceError(Exception):
    """The local store failed. Propagates to the caller."""

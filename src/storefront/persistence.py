"""Repository helpers for the version-checked aggregates.

Protean versions every aggregate: a save made from a copy whose ``_version``
is no longer the stored one is rejected with ``ExpectedVersionError``, under
the provider lock for the memory database and with ``UPDATE ... WHERE
_version`` on SQL. These helpers surface that as ``ConcurrencyConflict``.
"""

from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.exceptions import ConcurrencyConflict, NotFound


def load(aggregate_cls, identifier):
    """Fetch an aggregate by id, translating the provider's miss into ``NotFound``."""
    try:
        return current_domain.repository_for(aggregate_cls).get(str(identifier))
    except ObjectNotFoundError:
        raise NotFound(aggregate_cls.__name__, identifier) from None


def save(aggregate):
    """Persist ``aggregate``. Raises ``ConcurrencyConflict`` when it was loaded stale."""
    kind = type(aggregate).__name__
    loaded_revision = aggregate.revision
    try:
        current_domain.repository_for(type(aggregate)).add(aggregate)
    except ExpectedVersionError as exc:
        raise ConcurrencyConflict(kind, aggregate.id, loaded_revision) from exc
    except ObjectNotFoundError:
        raise NotFound(kind, aggregate.id) from None
    return aggregate


def remove(aggregate) -> None:
    """Delete ``aggregate`` only if nobody wrote it since it was loaded."""
    kind = type(aggregate).__name__
    loaded_revision = aggregate.revision
    dao = current_domain.repository_for(type(aggregate))._dao
    try:
        # The versioned write and the delete commit together
        with UnitOfWork():
            dao.save(aggregate)
            dao.delete(aggregate)
    except ExpectedVersionError as exc:
        raise ConcurrencyConflict(kind, aggregate.id, loaded_revision) from exc
    except ObjectNotFoundError:
        raise NotFound(kind, aggregate.id) from None

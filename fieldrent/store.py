"""
Persistence adapter handed to every service.

Services talk to the relational store only through a ``Store`` bound to a
SQLAlchemy session, so the same service code runs against the request's
Flask-SQLAlchemy session, a CLI session or a test session.
"""

import logging
import time

from sqlalchemy.exc import DBAPIError, OperationalError

from fieldrent.errors import StorageError

logger = logging.getLogger(__name__)


def _is_transient(exc):
    return isinstance(exc, OperationalError) or bool(getattr(exc, "connection_invalidated", False))


class Store:
    def __init__(self, session, retry_backoff=0.2):
        self.session = session
        self.retry_backoff = retry_backoff
        self._depth = 0

    def run(self, work, *args, **kwargs):
        """
        Run one unit of work, retrying it once after a transient database failure.

        Any exception rolls the session back before it propagates. A second
        transient failure surfaces as ``StorageError``. Calls made while a unit
        of work is already running execute inline and belong to that unit.
        """
        if self._depth:
            return work(*args, **kwargs)

        attempt = 0
        while True:
            try:
                return self._attempt(work, args, kwargs)
            except DBAPIError as exc:
                self.session.rollback()
                if not _is_transient(exc):
                    raise
                if attempt >= 1:
                    logger.error("Store operation %s failed after retry: %s", work.__name__, exc)
                    raise StorageError() from exc
                attempt += 1
                logger.warning("Transient store failure in %s, retrying: %s", work.__name__, exc)
                time.sleep(self.retry_backoff * attempt)
            except Exception:
                self.session.rollback()
                raise

    def _attempt(self, work, args, kwargs):
        self._depth += 1
        try:
            return work(*args, **kwargs)
        finally:
            self._depth -= 1

    def get(self, model, ident, for_update=False):
        return self.run(self._get, model, ident, for_update)

    def _get(self, model, ident, for_update):
        query = self.session.query(model).filter(model.id == ident)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def query(self, model, *criteria, order_by=(), options=()):
        """Build a query without executing it."""
        query = self.session.query(model)
        if options:
            query = query.options(*options)
        if criteria:
            query = query.filter(*criteria)
        if order_by:
            query = query.order_by(*order_by)
        return query

    def select(self, model, *criteria, order_by=(), options=()):
        return self.run(lambda: self.query(model, *criteria, order_by=order_by, options=options).all())

    def first(self, model, *criteria, order_by=()):
        return self.run(lambda: self.query(model, *criteria, order_by=order_by).first())

    def exists(self, model, *criteria):
        return self.run(lambda: self.query(model, *criteria).first() is not None)

    def insert(self, obj):
        self.session.add(obj)
        self.session.flush()
        return obj

    def update(self, obj, values):
        for key, value in values.items():
            setattr(obj, key, value)
        self.session.flush()
        return obj

    def update_where(self, model, criteria, values):
        return (
            self.session.query(model)
            .filter(*criteria)
            .update(values, synchronize_session=False)
        )

    def delete(self, obj):
        self.session.delete(obj)
        self.session.flush()

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

from contextlib import contextmanager
from cms_publisher.extensions import db

@contextmanager
def transactional():
    """Context manager for database transactions."""
    try:
        yield
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


@contextmanager
def savepoint():
    """
    Nested transaction: a failure inside only rolls back its own writes,
    the enclosing `transactional()` block keeps going.
    """
    nested = db.session.begin_nested()
    try:
        yield
        nested.commit()
    except Exception:
        nested.rollback()
        raise

import contextlib
import logging

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm.exc import StaleDataError

from core.exceptions import DuplicateMergeConflictError, PersistenceError
from database.database import SessionLocal
from database.repositories import PipelineRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def pipeline_uow():
    """Per-unit-of-work transaction scope.

    Yields a PipelineRepository bound to a fresh Session. Commits on success,
    rolls back on exception, always closes.

    Driver errors surface as PersistenceError and optimistic-lock failures
    as DuplicateMergeConflictError; everything else propagates unchanged.

    Usage:
        with pipeline_uow() as repo:
            posting = repo.postings.get_by_id(posting_id)
            # perform operations...
        # commit happens automatically on successful exit
    """
    session = SessionLocal()
    try:
        repo = PipelineRepository(session)
        yield repo
        session.commit()
    except StaleDataError as e:
        session.rollback()
        logger.warning(f"Concurrent update detected, rolled back: {e}")
        raise DuplicateMergeConflictError(str(e)) from e
    except DBAPIError as e:
        session.rollback()
        logger.error(f"Database error, rolled back: {e}")
        raise PersistenceError(str(e)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

# artisan_market/services/tx.py
import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from .errors import PromotionError, InternalError

logger = logging.getLogger(__name__)

@contextmanager
def transaction(action: str, on_integrity_error: PromotionError | None = None):
    """
    Run a block as one unit of work on the scoped session.

    Commits on success; on any failure the session is rolled back so no
    partial state is visible. Expected failures re-raise as-is, storage
    failures surface as InternalError.
    """
    try:
        yield db.session
        db.session.commit()
    except PromotionError as e:
        db.session.rollback()
        logger.info("%s aborted: %s (%s)", action, e.message, e.kind)
        raise
    except IntegrityError as e:
        db.session.rollback()
        if on_integrity_error is not None:
            logger.info("%s aborted on constraint: %s", action, on_integrity_error.message)
            raise on_integrity_error from e
        logger.exception("%s failed on constraint", action)
        raise InternalError(f"{action} failed") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("%s failed", action)
        raise InternalError(f"{action} failed") from e

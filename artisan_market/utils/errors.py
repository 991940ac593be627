# artisan_market/utils/errors.py
import logging
from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..services.errors import PromotionError
from .api import api_error

logger = logging.getLogger(__name__)

def register_error_handlers(app):
    @app.errorhandler(PromotionError)
    def handle_promotion_error(e):
        r = jsonify(api_error(e.message, e.data, kind=e.kind))
        r.status_code = e.status
        return r

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(e):
        db.session.rollback()
        logger.exception("storage failure")
        r = jsonify(api_error("storage unavailable", kind="internal"))
        r.status_code = 500
        return r

from flask import jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from cms_publisher.extensions import db
from . import v1_bp

@v1_bp.route('/health', methods=['GET'])
def health_check():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        db.session.rollback()
        database = "unavailable"

    return jsonify({
        "status": "ok" if database == "ok" else "degraded",
        "service": "cms-publisher",
        "database": database
    })

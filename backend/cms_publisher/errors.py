from flask import jsonify
from cms_publisher.domain.publishing.exceptions import PublishError, StoreError, ValidationError


def _error_response(error, status_code):
    response = jsonify({
        "error": type(error).__name__,
        "message": str(error)
    })
    response.status_code = status_code
    return response


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        return _error_response(error, 400)

    @app.errorhandler(StoreError)
    def handle_store_error(error):
        app.logger.error("[api] store failure: %s", error)
        return _error_response(error, 503)

    @app.errorhandler(PublishError)
    def handle_publish_error(error):
        app.logger.error("[api] publish failure: %s", error)
        return _error_response(error, 500)

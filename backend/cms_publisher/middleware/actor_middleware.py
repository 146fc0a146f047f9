from flask import request, g


def actor_middleware(app):
    @app.before_request
    def load_actor():
        # Optional: audit rows fall back to an anonymous actor
        g.actor_id = request.headers.get('X-Actor-ID') or None

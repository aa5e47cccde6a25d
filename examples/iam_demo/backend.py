from flask import Flask, jsonify

from examples.iam_demo.app_config import auth
from iam_verification import current_user


def create_app() -> Flask:
    """
    Create and configure the Flask application with IAM token validation.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)
    auth.init_app(app)

    @app.get("/api/me")
    @auth.require()
    def me():
        """Identity of the caller, as read from the verified token."""
        user = current_user()
        return jsonify(
            {
                "id": user.user_id,
                "organization": user.owner,
                "email": user.email,
                "name": user.name,
                "avatar": user.avatar,
            }
        ), 200

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({"status": "denied", "reason": error.description}), 401

    @app.errorhandler(503)
    def iam_unavailable(error):
        """The IAM server could not be reached; the token was not judged."""
        return jsonify({"status": "error", "reason": error.description}), 503

    return app


if __name__ == "__main__":
    create_app().run(port=8000)

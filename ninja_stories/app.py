"""
Ninja Stories - Flask application factory.
Registers the gamification blueprint on top of the main app's session-based login.
"""
import logging
from datetime import timedelta
from typing import Optional, Dict, Any

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFProtect

from . import config
from .init_db import init_db
from .blueprints.gamification_bp import gamification_bp

csrf = CSRFProtect()


def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=config.SECRET_KEY,
        DATABASE_PATH=config.DATABASE_PATH,
        ACHIEVEMENT_POLL_SECONDS=config.ACHIEVEMENT_POLL_SECONDS,
        QUIZ_COMPLETION_GOLD=config.QUIZ_COMPLETION_GOLD,
        PERMANENT_SESSION_LIFETIME=timedelta(hours=2),
    )
    if overrides:
        app.config.update(overrides)

    csrf.init_app(app)
    app.register_blueprint(gamification_bp)

    # Create tables on startup (idempotent)
    init_db(app.config["DATABASE_PATH"])

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors"""
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors"""
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    app.logger.info("Starting Ninja Stories at http://127.0.0.1:5000")
    app.run(debug=True, host='0.0.0.0', port=5000)

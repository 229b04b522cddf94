"""Fund analytics service: Flask application factory."""

import logging
from typing import Optional

from flask import Flask

from fund_analytics.config import get_global_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def create_app(config_name: Optional[str] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config_name: Environment name (development, testing, production);
            takes precedence over APP_ENV when given

    Returns:
        Flask: Configured Flask application instance
    """
    settings = get_global_settings()
    app_env = config_name or settings.app_env

    app = Flask(__name__)
    app.config.update(
        APP_ENV=app_env,
        DEBUG=app_env == "development",
        TESTING=app_env == "testing",
    )

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    from fund_analytics.blueprints.analytics import analytics_bp
    from fund_analytics.blueprints.health import health_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(analytics_bp)

    return app

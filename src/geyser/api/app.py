"""Flask application factory for the geyser API."""

from __future__ import annotations

from typing import Any, Optional

from flask import Flask

from geyser.api.base import GEYSER_CONFIG_KEY
from geyser.api.geyser_bp import geyser_bp


def create_app(geyser: Any, config: Optional[dict[str, Any]] = None) -> Flask:
    """
    Build a Flask app serving `geyser`.

    Args:
        geyser: TokenGeyser instance
        config: Extra Flask configuration
    """
    app = Flask(__name__)
    app.config[GEYSER_CONFIG_KEY] = geyser
    if config:
        app.config.update(config)
    app.register_blueprint(geyser_bp)
    return app

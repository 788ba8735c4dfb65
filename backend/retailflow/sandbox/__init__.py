# backend/retailflow/sandbox/__init__.py
import json

from flask import Flask

from ..config import Config
from .store import SandboxStore, seed_demo


def create_app(config: dict | None = None) -> Flask:
    """
    Sandbox remote API.

    Serves the routes the console talks to from an in-memory store. The
    store starts from SANDBOX_DATA_FILE when set, otherwise from the demo
    data set.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    store = SandboxStore()
    if app.config.get("SANDBOX_DATA_FILE"):
        with open(app.config["SANDBOX_DATA_FILE"], encoding="utf-8") as fh:
            store.load(json.load(fh))
    else:
        seed_demo(store)
    app.extensions["retailflow_sandbox"] = store

    # Register blueprints
    from .routes.purchases import purchases_bp
    from .routes.purchase_returns import purchase_returns_bp
    from .routes.sales import sales_bp
    from .routes.payments import payments_bp
    from .routes.accounts import accounts_bp
    from .routes.products import products_bp

    app.register_blueprint(purchases_bp)
    app.register_blueprint(purchase_returns_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(accounts_bp)
    app.register_blueprint(products_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app

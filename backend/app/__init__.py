"""Flask application factory."""

import json
import os
from flask import Flask
from flask_cors import CORS

from services.data_source import InMemoryDataSource, SupabaseDataSource
from services.developer_metrics import DEFAULT_SPRINT_CAPACITY_SP
from services.engine import MetricsEngine
from services.errors import ConfigError
from services.recompute import SingleFlightGuard
from services.rollup_store import InMemoryRollupStore, SupabaseRollupStore

DEFAULT_CONFIG = {
    "SUPABASE_URL": None,
    "SUPABASE_KEY": None,
    "SPRINT_CAPACITY_SP": DEFAULT_SPRINT_CAPACITY_SP,
    "REQUEST_TIMEOUT": 30,
    "CORS_ORIGINS": ["http://localhost:5173", "http://127.0.0.1:5173"],
}

# metrics-config.json key -> config key
FILE_KEYS = {
    "supabaseUrl": "SUPABASE_URL",
    "supabaseKey": "SUPABASE_KEY",
    "sprintCapacitySp": "SPRINT_CAPACITY_SP",
    "requestTimeout": "REQUEST_TIMEOUT",
    "corsOrigins": "CORS_ORIGINS",
}


def load_metrics_config(app) -> dict:
    """Load settings from the optional JSON config file."""
    config_path = os.environ.get("METRICS_CONFIG_PATH") or os.path.join(
        os.path.dirname(__file__), "..", "config", "metrics-config.json"
    )

    if not os.path.exists(config_path):
        app.logger.info("No metrics-config.json found, using defaults and environment")
        return {}

    try:
        with open(config_path, "r") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        app.logger.warning(f"Failed to load metrics config: {e}")
        return {}

    if not isinstance(raw, dict):
        app.logger.warning("Ignoring metrics config: top level must be an object")
        return {}

    loaded = {FILE_KEYS[k]: v for k, v in raw.items() if k in FILE_KEYS}
    app.logger.info(f"Loaded {len(loaded)} setting(s) from {config_path}")
    return loaded


def load_env_config() -> dict:
    loaded = {}
    for key in ("SUPABASE_URL", "SUPABASE_KEY", "SPRINT_CAPACITY_SP", "REQUEST_TIMEOUT"):
        if os.environ.get(key):
            loaded[key] = os.environ[key]
    if os.environ.get("CORS_ORIGINS"):
        loaded["CORS_ORIGINS"] = [
            o.strip() for o in os.environ["CORS_ORIGINS"].split(",") if o.strip()
        ]
    return loaded


def _positive_number(config: dict, key: str) -> float:
    value = config[key]
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    if number <= 0:
        raise ConfigError(f"{key} must be positive, got {value!r}")
    return number


def build_config(app, overrides=None) -> dict:
    """Merge defaults, config file, environment and explicit overrides."""
    config = dict(DEFAULT_CONFIG)
    config.update(load_metrics_config(app))
    config.update(load_env_config())
    config.update(overrides or {})

    config["SPRINT_CAPACITY_SP"] = _positive_number(config, "SPRINT_CAPACITY_SP")
    config["REQUEST_TIMEOUT"] = _positive_number(config, "REQUEST_TIMEOUT")
    if config["SUPABASE_URL"] and not config["SUPABASE_KEY"]:
        raise ConfigError("SUPABASE_KEY is required when SUPABASE_URL is set")
    return config


def create_app(data_source=None, rollup_store=None, config=None):
    """Create and configure the Flask application.

    Args:
        data_source: Optional ``DataSource``; built from config when omitted.
        rollup_store: Optional ``RollupStore``; built from config when omitted.
        config: Optional mapping overriding file and environment settings.
    """
    app = Flask(__name__)
    settings = build_config(app, config)
    app.config.update(settings)

    # Enable CORS for frontend
    CORS(app, resources={
        r"/api/*": {
            "origins": settings["CORS_ORIGINS"],
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type"]
        }
    })

    url = settings["SUPABASE_URL"]
    if data_source is None or rollup_store is None:
        if url:
            app.logger.info(f"Using Supabase store at {url}")
        else:
            app.logger.warning("SUPABASE_URL not set, using an empty in-memory store")

    if data_source is None:
        data_source = (
            SupabaseDataSource(url, settings["SUPABASE_KEY"], settings["REQUEST_TIMEOUT"])
            if url else InMemoryDataSource()
        )
    if rollup_store is None:
        rollup_store = (
            SupabaseRollupStore(url, settings["SUPABASE_KEY"], settings["REQUEST_TIMEOUT"])
            if url else InMemoryRollupStore()
        )

    app.extensions["metrics_engine"] = MetricsEngine(
        data_source, rollup_store, capacity=settings["SPRINT_CAPACITY_SP"]
    )
    app.extensions["recompute_guard"] = SingleFlightGuard()

    # Register blueprints
    from app.api import metrics, recompute
    app.register_blueprint(metrics.bp)
    app.register_blueprint(recompute.bp)

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    return app

import logging
from flask import Flask, jsonify
from .extensions import db, jwt, cors, migrate
from .config import Config

def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    config_object = config_object or Config
    app.config.from_object(config_object)
    config_object.init_app(app)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("artisan_market").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})
    migrate.init_app(app, db)

    # Register blueprints
    from .discount import bp as discount_bp; app.register_blueprint(discount_bp)
    from .event import bp as event_bp; app.register_blueprint(event_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)

    from .utils.errors import register_error_handlers
    register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401  registers tables
        db.create_all()

    return app

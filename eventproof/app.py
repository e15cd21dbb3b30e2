import logging
from flask import Flask, jsonify
from flasgger import Swagger
from eventproof.codec import normalize_address
from eventproof.config import Config
from eventproof.extensions import db, jwt
from eventproof.errors import ProtocolError
from eventproof import models  # noqa: F401  registers the tables

logger = logging.getLogger(__name__)


def create_app(config=None):
    app = Flask(__name__)

    # Configuration
    app.config.from_object(Config)
    if config:
        app.config.update(config)
    # callers are compared in canonical form
    if app.config.get('OPERATOR_ADDRESS'):
        app.config['OPERATOR_ADDRESS'] = normalize_address(app.config['OPERATOR_ADDRESS'])

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Initialize Extensions
    db.init_app(app)
    jwt.init_app(app)

    swagger_config = {
        "headers": [],
        "specs": [
            {
                "endpoint": 'apispec_1',
                "route": '/apispec_1.json',
                "rule_filter": lambda rule: True,
                "model_filter": lambda tag: True,
            }
        ],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/apidocs/"
    }
    Swagger(app, config=swagger_config)

    # Register Blueprints
    from eventproof.routes import AddressConverter
    app.url_map.converters['address'] = AddressConverter

    from eventproof.routes.events import events_bp, organizers_bp
    app.register_blueprint(organizers_bp, url_prefix='/organizers')
    app.register_blueprint(events_bp, url_prefix='/events')

    from eventproof.routes.attendance import attendance_bp
    app.register_blueprint(attendance_bp, url_prefix='/attendance')

    from eventproof.routes.nfts import nfts_bp
    app.register_blueprint(nfts_bp, url_prefix='/nfts')

    from eventproof.routes.ratings import ratings_bp
    app.register_blueprint(ratings_bp, url_prefix='/ratings')

    from eventproof.routes.escrows import escrows_bp
    app.register_blueprint(escrows_bp, url_prefix='/escrows')

    from eventproof.routes.airdrops import airdrops_bp
    app.register_blueprint(airdrops_bp, url_prefix='/airdrops')

    @app.errorhandler(ProtocolError)
    def handle_protocol_error(err):
        db.session.rollback()
        logger.info("Aborted: %s", err)
        return jsonify(err.to_dict()), err.http_status

    @app.route('/health')
    def health():
        try:
            db.session.execute(db.text('SELECT 1'))
            return {"service": "eventproof", "status": "healthy"}, 200
        except Exception as e:
            return {"service": "eventproof", "status": "unhealthy", "error": str(e)}, 503

    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5000)

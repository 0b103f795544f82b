# clinic_app_pkg/__init__.py

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, NotFound

# Load environment variables from .env file.
load_dotenv()

from .config import get_config

# Initialize extensions at the top level, but without an app context.
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name=None):
    """
    Application factory function.
    """
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    db.init_app(app)
    migrate.init_app(app, db)

    # Imported here; sockets.py pulls in utils and models, which need db.
    from .sockets import socketio
    socketio.init_app(app)

    from .auth.routes import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    from .workflow.routes import workflow_bp
    app.register_blueprint(workflow_bp, url_prefix='/api/admin/workflow')

    from .integrations.routes import integrations_bp
    app.register_blueprint(integrations_bp, url_prefix='/api')

    from .referrals.routes import referrals_bp
    app.register_blueprint(referrals_bp, url_prefix='/api')

    from .visits.routes import visits_bp
    app.register_blueprint(visits_bp, url_prefix='/api')

    @app.route('/health')
    def health_check():
        return "Clinic API is healthy!", 200

    # Centralized error handling
    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        app.logger.error(f"Database Error: {e}")
        db.session.rollback()
        return jsonify({"error": "A database error occurred."}), 500

    @app.errorhandler(NotFound)
    def handle_not_found_error(e):
        app.logger.warning(f"Not Found Error: {e}")
        return jsonify({"error": "The requested resource was not found."}), 404

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_generic_error(e):
        app.logger.error(f"An unexpected error occurred: {e}", exc_info=True)
        return jsonify({"error": "An unexpected server error occurred."}), 500

    return app

import os

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_mail import Mail
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect

db = SQLAlchemy()
login_manager = LoginManager()
mail = Mail()
migrate = Migrate()
csrf = CSRFProtect()


def create_app(config_name=None, storage=None):
    """Build the application.

    ``storage`` lets the caller inject a store; otherwise ``STORAGE_BACKEND``
    picks one when the app is created.
    """
    from bookhaven.config import config

    app = Flask(__name__)
    app.config.from_object(config[config_name or os.environ.get('FLASK_CONFIG', 'default')])

    # module loggers propagate to app.logger, which is named 'bookhaven'
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Import models
    from bookhaven import models  # noqa: F401
    from bookhaven.storage import init_storage, get_storage

    storage = init_storage(app, storage)
    app.logger.info('Using %s storage', storage.name)

    @login_manager.user_loader
    def load_user(user_id):
        return get_storage().get_user(int(user_id))

    from bookhaven.errors import Unauthorized, register_error_handlers

    @login_manager.unauthorized_handler
    def unauthorized():
        raise Unauthorized()

    register_error_handlers(app)

    # Register blueprints
    from bookhaven.routes.main import main_bp
    from bookhaven.routes.auth import auth_bp
    from bookhaven.routes.customer import customer_bp
    from bookhaven.routes.admin import admin_bp

    app.register_blueprint(main_bp, url_prefix='/api')
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(customer_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    if app.config.get('SEED_DEMO_DATA'):
        from bookhaven.seed import seed_demo_data
        with app.app_context():
            seed_demo_data(storage, app.config['ADMIN_EMAIL'], app.config['ADMIN_PASSWORD'])

    return app

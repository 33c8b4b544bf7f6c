import os
from flask import Flask, request, session, g, has_request_context, current_app
from flask_babel import Babel
from .models import db
from .errors import register_error_handlers
from .notifications import CATEGORIES as WEBHOOK_CATEGORIES


def get_locale():
    if not has_request_context():
        return current_app.config['BABEL_DEFAULT_LOCALE']
    return request.args.get('lang', session.get('lang', current_app.config['BABEL_DEFAULT_LOCALE']))


def webhooks_from_env():
    webhooks = {}
    for category in WEBHOOK_CATEGORIES:
        url = os.getenv(f"WEBHOOK_{category.upper()}")
        if url:
            webhooks[category] = url
    return webhooks


def create_app(test_config=None):
    app = Flask(__name__)

    @app.before_request
    def before_request():
        """Capture language parameter and save to session for persistence across requests"""
        if 'lang' in request.args:
            session['lang'] = request.args.get('lang')
        # Per-request state, reset when the app context is reused
        g.pop('employee_session', None)
        g.pop('pending_admin_actions', None)

    # Load configurations
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv("DATABASE_URL", "sqlite:///henhouse.db")
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Shared secret expected in the X-HenHouse-Token header of FiveM calls
    app.config['FIVEM_TOKEN'] = os.getenv('FIVEM_TOKEN', '')

    app.config['WEBHOOKS'] = webhooks_from_env()
    app.config['WEBHOOK_TIMEOUT'] = float(os.getenv('WEBHOOK_TIMEOUT', '5'))
    app.config['READY_STOCK_LOW_THRESHOLD'] = int(os.getenv('READY_STOCK_LOW_THRESHOLD', '10'))
    app.config['CURRENCY_SYMBOL'] = os.getenv('CURRENCY_SYMBOL', '$')

    app.config['BABEL_DEFAULT_LOCALE'] = 'fr'
    app.config['BABEL_SUPPORTED_LOCALES'] = ['fr', 'en']
    app.config['BABEL_TRANSLATION_DIRECTORIES'] = 'translations'

    app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max upload size

    if test_config:
        app.config.update(test_config)

    Babel(app, locale_selector=get_locale)

    # Initialize database
    db.init_app(app)
    register_error_handlers(app)

    # Register blueprints
    from .routes.auth import auth_blueprint
    from .routes.dashboard import dashboard_blueprint
    from .routes.settings import settings_blueprint
    from .routes.stock import stock_blueprint
    from .routes.pos import pos_blueprint
    from .routes.production import production_blueprint
    from .routes.menus import menus_blueprint
    from .routes.partners import partners_blueprint
    from .routes.hr import hr_blueprint
    from .routes.expenses import expenses_blueprint
    from .routes.inbox import inbox_blueprint
    from .routes.requests import requests_blueprint
    from .routes.admin import admin_blueprint
    from .routes.fivem import fivem_blueprint
    app.register_blueprint(auth_blueprint)
    app.register_blueprint(dashboard_blueprint)
    app.register_blueprint(settings_blueprint)
    app.register_blueprint(stock_blueprint)
    app.register_blueprint(pos_blueprint)
    app.register_blueprint(production_blueprint)
    app.register_blueprint(menus_blueprint)
    app.register_blueprint(partners_blueprint)
    app.register_blueprint(hr_blueprint)
    app.register_blueprint(expenses_blueprint)
    app.register_blueprint(inbox_blueprint)
    app.register_blueprint(requests_blueprint)
    app.register_blueprint(admin_blueprint)
    app.register_blueprint(fivem_blueprint)

    with app.app_context():
        db.create_all()
        from .permissions import seed_module_permissions
        from .payroll import seed_salary_configs
        seed_module_permissions()
        seed_salary_configs()

    return app

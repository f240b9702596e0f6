# pallet_tracker/__init__.py

import os
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect
from flask_socketio import SocketIO

from config import DevelopmentConfig, Config

# Глобально создаем экземпляры, но не настраиваем их
db = SQLAlchemy()
migrate = Migrate(render_as_batch=True)
csrf = CSRFProtect()
socketio = SocketIO()


def create_app(config_class: Config = DevelopmentConfig):

    # --- Инициализация Sentry для мониторинга ошибок ---
    sentry_dsn = getattr(config_class, 'SENTRY_DSN', None)
    if sentry_dsn:
        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=1.0,
            profiles_sample_rate=1.0
        )

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    # Инициализируем расширения с нашим приложением
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    # Обработчики Socket.IO должны попасть в socketio.handlers до init_app
    from . import sockets  # noqa: F401
    socketio.init_app(
        app,
        async_mode=app.config['SOCKETIO_ASYNC_MODE'],
        cors_allowed_origins=app.config['SOCKETIO_CORS_ALLOWED_ORIGINS']
    )

    # Явная регистрация CLI команд
    from . import commands
    app.cli.add_command(commands.seed_demo_command)

    with app.app_context():

        # --- Создание instance-папки ---
        try:
            os.makedirs(app.instance_path)
        except OSError:
            pass

        # --- РЕГИСТРАЦИЯ БЛЮПРИНТОВ ---
        # JSON API не использует HTML-формы, поэтому CSRF для него отключен
        from .api import api_bp as api_blueprint
        csrf.exempt(api_blueprint)
        app.register_blueprint(api_blueprint)

        # --- Обработчики ошибок и события Socket.IO ---
        from .errors import register_error_handlers
        register_error_handlers(app)

        from . import models  # noqa: F401

    # Возвращаем оба объекта для использования в wsgi.py
    return app, socketio

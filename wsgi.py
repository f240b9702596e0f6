# wsgi.py

import os
import sys
from logging.handlers import RotatingFileHandler
from dotenv import load_dotenv
from pythonjsonlogger import jsonlogger

from pallet_tracker import create_app
from config import config_by_name

load_dotenv()

# Конфигурация (development, production) выбирается переменной окружения
config_name = os.environ.get('FLASK_ENV', 'development')
try:
    config_class = config_by_name[config_name]
except KeyError:
    sys.exit(f"Ошибка: Неверное имя конфигурации '{config_name}'. Допустимые значения: development, production, testing.")

app, socketio = create_app(config_class)

# --- Настройка логирования ---
if not app.debug and not app.testing:
    log_dir = os.path.join(app.instance_path, 'logs')
    os.makedirs(log_dir, exist_ok=True)

    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'pallet_tracker.log'), maxBytes=10485760, backupCount=5, encoding='utf-8'
    )
    log_format = '%(asctime)s %(name)s %(levelname)s %(pathname)s %(lineno)d %(message)s'
    file_handler.setFormatter(jsonlogger.JsonFormatter(log_format))

    app.logger.addHandler(file_handler)
    app.logger.setLevel(app.config['LOG_LEVEL'])
    app.logger.info('Pallet Tracker application startup')

# `flask run` несовместим с eventlet, поэтому сервер запускается командой `python wsgi.py`
if __name__ == '__main__':
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 5000))
    print(f"--> Starting SocketIO server on http://{host}:{port}")
    socketio.run(app, host=host, port=port)

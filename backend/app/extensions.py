# Overview: Flask extension instances for database, migrations and real-time fan-out.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.notification_service import NotificationFanout

db = SQLAlchemy()
migrate = Migrate()
notifications = NotificationFanout()

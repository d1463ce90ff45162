# Restroom Pass — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.pass_log import PassLogEntry   # noqa
from app.models.student import Student         # noqa

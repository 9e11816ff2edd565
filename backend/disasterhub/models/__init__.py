"""ORM models. Importing this package registers every table on Base.metadata."""

from disasterhub.models.user import User
from disasterhub.models.disaster import Disaster
from disasterhub.models.notification import Notification

__all__ = ["User", "Disaster", "Notification"]

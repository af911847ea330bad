# Gatehouse database models
# Import all models here for SQLAlchemy discovery

from gatehouse.models.tenant import Tenant               # noqa
from gatehouse.models.profile import Profile             # noqa
from gatehouse.models.driver import Driver               # noqa
from gatehouse.models.entry import Entry                 # noqa
from gatehouse.models.occurrence import Occurrence       # noqa

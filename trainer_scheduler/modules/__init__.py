"""Domain modules package."""

from trainer_scheduler.modules.availability import models as availability_models  # noqa: F401
from trainer_scheduler.modules.outbox import models as outbox_models  # noqa: F401
from trainer_scheduler.modules.sessions import models as sessions_models  # noqa: F401

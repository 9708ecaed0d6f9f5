# Registers ALL models on the same registry
from app.db.base_class import Base  # noqa
from app.models.availability import AvailabilityRecord  # noqa

# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from halaqa.models.series import Series  # noqa: F401  (doit précéder session)
from halaqa.models.session import HalaqaSession  # noqa: F401
from halaqa.models.participant import (  # noqa: F401
    AvatarFormLevel,
    Participant,
    ParticipantSeries,
    RewardClaim,
)
from halaqa.models.attendance import Attendance  # noqa: F401
from halaqa.models.notification_log import NotificationLog  # noqa: F401

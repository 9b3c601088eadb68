# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from padelmatch.models.court import Court  # noqa: F401
from padelmatch.models.match import Match  # noqa: F401
from padelmatch.models.match_notification import MatchNotification  # noqa: F401
from padelmatch.models.player import Player  # noqa: F401
from padelmatch.models.replacement_request import ReplacementRequest  # noqa: F401
from padelmatch.models.sms_log import SmsLog  # noqa: F401

from cfb_pickem import db  # noqa: F401 - imported for model imports

from .admin_action import AdminAction
from .anonymous_pick import AnonymousPick
from .game import Game
from .payment import LeagueSafePayment
from .pick import Pick
from .pick_preference import UserPickPreference
from .user import User
from .week_settings import WeekSettings

__all__ = [
    "User",
    "LeagueSafePayment",
    "Game",
    "Pick",
    "AnonymousPick",
    "WeekSettings",
    "UserPickPreference",
    "AdminAction",
]

from .tokens import RewardToken, STATUS_UNREDEEMED, STATUS_REDEEMED
from .security import SecurityEvent

__all__ = [
    'RewardToken', 'STATUS_UNREDEEMED', 'STATUS_REDEEMED',
    'SecurityEvent',
]

from .automation_log import AutomationLog
from .client import Client
from .conversation import Conversation
from .message import Message
from .payment import Payment
from .setting import Setting
from .subscription import Subscription
from .user import User

from .role import Role  # noqa: F401
from .user import User, user_roles  # noqa: F401
from .member import Member  # noqa: F401
from .membership_request import MembershipRequest  # noqa: F401
from .board_vote import BoardVote  # noqa: F401
from .membership_request_history import MembershipRequestStatusHistory  # noqa: F401
from .setting import Setting  # noqa: F401

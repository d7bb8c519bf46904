"""Identity: Cachet directory, user-info cache and avatars."""

from slackirc.identity.avatars import avatar_for_nick
from slackirc.identity.cachet import DEFAULT_RETRY, CachetClient, DirectoryUser, UserDirectory
from slackirc.identity.user_cache import UserInfo, UserInfoCache

__all__ = [
    "DEFAULT_RETRY",
    "CachetClient",
    "DirectoryUser",
    "UserDirectory",
    "UserInfo",
    "UserInfoCache",
    "avatar_for_nick",
]

from dineout.models.users import UserAuth, UserProfile
from dineout.models.reviews import ReviewRow
from dineout.models.favorites import FavoriteRow

__all__ = ["UserAuth", "UserProfile", "ReviewRow", "FavoriteRow"]

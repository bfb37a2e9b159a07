import enum


class ArticleStatus(str, enum.Enum):
    DRAFT = "draft"
    REVIEW = "review"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    TRASHED = "trashed"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class CommentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SPAM = "spam"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class ReactionType(str, enum.Enum):
    LIKE = "like"
    DISLIKE = "dislike"

    def opposite(self) -> "ReactionType":
        return ReactionType.DISLIKE if self is ReactionType.LIKE else ReactionType.LIKE


class NotificationType(str, enum.Enum):
    ARTICLE_PUBLISHED = "article_published"
    NEW_COMMENT = "new_comment"
    NEWSLETTER = "newsletter"
    SYSTEM_ALERT = "system_alert"


class AudienceType(str, enum.Enum):
    ALL = "all"
    USER = "user"
    ROLE = "role"
    CATEGORY = "category"


class MediaType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


class UserRole(str, enum.Enum):
    ADMINISTRATOR = "administrator"
    EDITOR = "editor"
    AUTHOR = "author"
    CONTRIBUTOR = "contributor"
    SUBSCRIBER = "subscriber"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    BANNED = "banned"
    BLOCKED = "blocked"


class TokenAbility(str, enum.Enum):
    ACCESS_API = "access-api"
    REFRESH_TOKEN = "refresh-token"

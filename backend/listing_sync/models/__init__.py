from listing_sync.models.audit import ActivityLog, AuditRecord, NotificationChannel
from listing_sync.models.insights import MediaItem, PerformanceSample, SearchKeyword
from listing_sync.models.listing import Listing, ListingCredential, ListingStatus
from listing_sync.models.post import Post, PostStatus, PostType
from listing_sync.models.review import ReplyStatus, Review, ReviewSentiment

__all__ = [
    "ActivityLog",
    "AuditRecord",
    "Listing",
    "ListingCredential",
    "ListingStatus",
    "MediaItem",
    "NotificationChannel",
    "PerformanceSample",
    "Post",
    "PostStatus",
    "PostType",
    "ReplyStatus",
    "Review",
    "ReviewSentiment",
    "SearchKeyword",
]

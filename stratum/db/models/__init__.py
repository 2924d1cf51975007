from stratum.db.models.collection import DEFAULT_RELEASE, Collection
from stratum.db.models.content import Content, ContentStatus
from stratum.db.models.content_version import ContentVersion

__all__ = ["DEFAULT_RELEASE", "Collection", "Content", "ContentStatus", "ContentVersion"]

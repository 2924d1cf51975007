from stratum.controllers.collections import CollectionController
from stratum.controllers.contents import ContentController
from stratum.controllers.versions import VersionController

__all__ = ["CollectionController", "ContentController", "VersionController"]

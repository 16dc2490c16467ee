from pathlib import Path

import platformdirs

from .typed_path import AbsDir, RelFile

GRAFT_NAME = "graft"
GRAFT_CONFIG: RelFile = RelFile(Path(".grafts.yaml"))
GRAFT_CACHE: AbsDir = AbsDir(Path(platformdirs.user_cache_dir(GRAFT_NAME)))
USE_LOCAL_CACHE_VARIABLE = "GRAFT_USE_LOCAL_CACHE"
LOCAL_CACHE_DIR_VARIABLE = "GRAFT_LOCAL_CACHE_DIR"
TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})
REQUIRED_GIT_VERSION = "1.7.0"
COMMIT_MESSAGE_PREFIX = "Graft:"

LOADING_SUFFIX = "..."
DONE_SUFFIX = "[done]"
FAILURE_SUFFIX = "[failed]"

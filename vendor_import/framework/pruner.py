from __future__ import annotations

import logging
from collections.abc import Iterable

from vendor_import.framework.trees import StagingTrees, remove_path


class SourcePruner:
    """Removes unneeded upstream paths from both trees of a staging pair.

    Both trees are pruned identically so a later regenerate never diffs against
    content that was dropped from the working tree.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def prune(self, trees: StagingTrees, relpaths: Iterable[str]) -> None:
        paths = tuple(relpaths)
        self.logger.info("Removing %s", " ".join(paths))
        for root in (trees.pristine.root, trees.working.root):
            for relpath in paths:
                if not remove_path(root / relpath):
                    self.logger.warning("Nothing to remove at %s", root / relpath)

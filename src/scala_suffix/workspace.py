# src/scala_suffix/workspace.py
import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)


class Workspace:
    """
    Context manager owning the scratch directory for one run.

    Entering creates a fresh temp directory; leaving removes it. Each patch
    request borrows the directory through request_scope(), which empties it
    before handing it out and again on the way back, whatever happened.
    """

    def __init__(
        self,
        prefix: str = "scala-suffix-",
        base_dir: Optional[Union[str, Path]] = None,
    ):
        self.prefix = prefix
        self.base_dir = Path(base_dir) if base_dir else None
        self.path: Optional[Path] = None

    def __enter__(self):
        if self.base_dir is not None:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir))
        logger.debug(f"Created workspace {self.path}")
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        """Remove the workspace directory."""
        if self.path and self.path.exists():
            logger.debug(f"Removing workspace {self.path}")
            try:
                shutil.rmtree(self.path)
            except OSError as e:
                logger.error(f"Failed to delete workspace {self.path}: {e}")

        # Allow exceptions to propagate.

    @contextmanager
    def request_scope(self) -> Iterator[Path]:
        """Yield the emptied workspace directory, emptying it again on exit."""
        if self.path is None or not self.path.is_dir():
            raise RuntimeError("Workspace is not open; use it in a 'with' block")
        self.clean()
        try:
            yield self.path
        finally:
            self.clean()

    def clean(self) -> None:
        """Remove everything inside the workspace, keeping the directory."""
        if self.path is None or not self.path.is_dir():
            return
        for child in self.path.iterdir():
            try:
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
            except OSError as e:
                logger.error(f"Failed to clean {child}: {e}")

from typing import List, Optional, Sequence, Tuple


class ImageOptimizerError(Exception):
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class ValidationFailure(ImageOptimizerError):
    """Input breaks the size, dimension or format limits."""

    def __init__(self, path: str, errors: Sequence[str]):
        self.errors: List[str] = list(errors)
        super().__init__(f"Image validation failed for {path}: {'; '.join(self.errors)}", path)


class ProcessingFailure(ImageOptimizerError):
    """Decode, resize, encode or write failed. ``failures`` lists every (output, exception); ``written`` what was produced."""

    def __init__(
        self,
        path: str,
        cause: BaseException,
        failures: Optional[Sequence[Tuple[str, BaseException]]] = None,
        written: Optional[Sequence[str]] = None,
    ):
        self.cause = cause
        self.failures: List[Tuple[str, BaseException]] = list(failures or [])
        self.written: List[str] = list(written or [])
        super().__init__(f"Failed to process image {path}: {cause}", path)

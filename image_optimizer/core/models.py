from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

@dataclass(frozen=True)
class SizeSpec:
    width: int
    height: int

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Size must be at least 1x1, got {self.width}x{self.height}")

    @classmethod
    def coerce(cls, value: Any) -> "SizeSpec":
        """Accept a SizeSpec, a {'width', 'height'} mapping or a (w, h) pair."""
        if isinstance(value, SizeSpec): return value
        if isinstance(value, Mapping): return cls(int(value["width"]), int(value["height"]))
        w, h = value
        return cls(int(w), int(h))

    @property
    def box(self) -> Tuple[int, int]:
        return self.width, self.height

DEFAULT_SIZES: Mapping[str, SizeSpec] = MappingProxyType({
    "large": SizeSpec(800, 450),
    "medium": SizeSpec(400, 225),
    "small": SizeSpec(200, 113),
    "thumbnail": SizeSpec(150, 150),
})
DEFAULT_QUALITY: Mapping[str, int] = MappingProxyType({"webp": 80, "jpeg": 85, "png": 85})
DEFAULT_FORMATS: Tuple[str, ...] = ("webp", "jpeg")
FALLBACK_QUALITY = 80

@dataclass(frozen=True)
class ProcessingOptions:
    output_dir: Optional[str] = None
    basename: Optional[str] = None
    sizes: Mapping[str, Any] = field(default_factory=lambda: dict(DEFAULT_SIZES))
    formats: Tuple[str, ...] = DEFAULT_FORMATS
    quality: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_QUALITY))
    preserve_original: bool = True
    max_workers: Optional[int] = None

    def size_table(self) -> Dict[str, SizeSpec]:
        return {name: SizeSpec.coerce(spec) for name, spec in self.sizes.items()}

    def quality_for(self, fmt: str) -> int:
        fmt = normalize_format(fmt)
        return int(self.quality.get(fmt, FALLBACK_QUALITY))

@dataclass(frozen=True)
class SourceMetadata:
    width: int
    height: int
    format: str
    size: int

@dataclass
class Derivative:
    size: str
    format: str
    path: str
    filename: str
    dimensions: SizeSpec
    output_size: Optional[Tuple[int, int]] = None

@dataclass
class OptimizedOriginal:
    path: str
    filename: str
    format: str

@dataclass
class ProcessingResult:
    original: str
    metadata: SourceMetadata
    processed: List[Derivative] = field(default_factory=list)
    optimized: Optional[OptimizedOriginal] = None

    @property
    def paths(self) -> List[str]:
        out = [d.path for d in self.processed]
        if self.optimized: out.append(self.optimized.path)
        return out

@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metadata: Optional[SourceMetadata] = None

_FORMAT_ALIASES = {"jpg": "jpeg", "mpo": "jpeg", "tif": "tiff"}

def normalize_format(fmt: str) -> str:
    f = (fmt or "").lower().lstrip(".")
    return _FORMAT_ALIASES.get(f, f)

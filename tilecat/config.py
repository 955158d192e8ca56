import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_BRAND_LOGO = "../AXOLI/DATA/logo.svg"
DEFAULT_SIZE_ICON = "../AXOLI/DATA/size.svg"


@dataclass(frozen=True)
class Settings:
    public_root: Path = Path("public")
    catalogue_path: Optional[Path] = None
    asset_url_prefix: str = "../AXOLI/DATA"
    brand_logo: str = DEFAULT_BRAND_LOGO
    size_icon: str = DEFAULT_SIZE_ICON
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: ("*",))
    log_level: str = "INFO"

    @property
    def data_dir(self) -> Path:
        return self.public_root / "data"

    @property
    def catalogue(self) -> Path:
        return self.catalogue_path or self.data_dir / "catalogue.json"

    @property
    def asset_root(self) -> Path:
        return self.public_root / "AXOLI" / "DATA"

    @classmethod
    def from_env(cls) -> "Settings":
        catalogue = os.getenv("TILECAT_CATALOGUE", "").strip()
        origins = os.getenv("TILECAT_CORS_ORIGINS", "*")
        return cls(
            public_root=Path(os.getenv("TILECAT_PUBLIC_ROOT", "public")).resolve(),
            catalogue_path=Path(catalogue).resolve() if catalogue else None,
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            log_level=os.getenv("TILECAT_LOG_LEVEL", "INFO").upper(),
        )

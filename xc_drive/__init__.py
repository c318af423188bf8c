from typing import Final

__version__: Final[str] = "0.1.0"

XC_AID_NAME: Final[str] = "XC_AID"
XC_KEY_NAME: Final[str] = "XC_KEY"
CZK_API_KEY_NAME: Final[str] = "CZK_API_KEY"
CZK_API_SECRET_NAME: Final[str] = "CZK_API_SECRET"

XC_BASE_URL: Final[str] = "https://api.1785677.xyz/opapi"
CZK_BASE_URL: Final[str] = "https://pan.szczk.top/czkapi"

MiB: Final[int] = 1024 * 1024
GiB: Final[int] = 1024 * MiB

DEFAULT_CHUNK_SIZE: Final[int] = 100 * MiB
DEFAULT_SINGLE_SHOT_THRESHOLD: Final[int] = 1 * GiB
DEFAULT_FINGERPRINT_PREFIX_SIZE: Final[int] = 10 * MiB
DEFAULT_AUTH_CODE_TTL: Final[int] = 3600

__all__ = [
    "CZK_API_KEY_NAME",
    "CZK_API_SECRET_NAME",
    "CZK_BASE_URL",
    "DEFAULT_AUTH_CODE_TTL",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_FINGERPRINT_PREFIX_SIZE",
    "DEFAULT_SINGLE_SHOT_THRESHOLD",
    "XC_AID_NAME",
    "XC_BASE_URL",
    "XC_KEY_NAME",
]

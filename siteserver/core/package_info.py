"""
Package Manifest Reader

Reads the JSON manifest shipped with the site and exposes its version
for startup logging.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import StartupError


logger = logging.getLogger(__name__)


class PackageInfo(BaseModel):
    """
    Package manifest.

    Only version is required, other keys are kept but ignored.
    """

    model_config = ConfigDict(extra="allow")

    version: str
    name: Optional[str] = None
    description: Optional[str] = None


async def read_json_file(filename: Union[str, Path]) -> Dict[str, Any]:
    """Read and parse a JSON document."""
    with open(filename, "r", encoding="utf-8") as f:
        return json.load(f)


async def get_package_info(filename: Union[str, Path]) -> PackageInfo:
    """
    Load the package manifest.

    Args:
        filename: Path to the JSON manifest

    Returns:
        Parsed PackageInfo

    Raises:
        StartupError: If the file is missing, not JSON, or has no version
    """
    try:
        data = await read_json_file(filename)
        return PackageInfo(**data)

    except FileNotFoundError:
        raise StartupError("Manifest file not found", path=str(filename))
    except json.JSONDecodeError as e:
        raise StartupError(f"Invalid JSON in manifest: {e}", path=str(filename))
    except (TypeError, ValidationError) as e:
        raise StartupError(f"Invalid manifest: {e}", path=str(filename))

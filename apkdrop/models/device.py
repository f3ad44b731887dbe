"""
Device specification model.

The device spec is a caller-supplied document describing the target device.
Only the ABI list is interpreted by APKdrop itself; every other field is passed
through verbatim to bundletool's ``--device-spec`` file.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import InvalidDeviceSpecError


class DeviceSpec(BaseModel):
    """Target device capabilities supplied per retrieval request."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sdk_version: StrictStr = Field(alias="sdkVersion", min_length=1, description="Platform SDK version")
    supported_abis: list[StrictStr] = Field(
        alias="supportedAbis",
        min_length=1,
        description="Instruction-set architectures in caller preference order",
    )

    def to_document(self) -> dict[str, Any]:
        """Return the spec as bundletool expects it, extra fields included."""
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_document())


def parse_device_spec(raw: Any) -> DeviceSpec:
    """Validate a raw device spec document.

    Args:
        raw: Decoded JSON object, an existing DeviceSpec, or anything a caller sent.

    Returns:
        The validated DeviceSpec.

    Raises:
        InvalidDeviceSpecError: If the document is not an object, lacks
            ``sdkVersion``/``supportedAbis``, or has the wrong types.
    """
    if isinstance(raw, DeviceSpec):
        return raw
    if not isinstance(raw, dict):
        raise InvalidDeviceSpecError(
            message="Device spec must be an object",
            context={"received_type": type(raw).__name__},
        )

    try:
        return DeviceSpec.model_validate(raw)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_input=False)
        first = errors[0] if errors else {}
        field_name = ".".join(str(part) for part in first.get("loc", ())) or None
        raise InvalidDeviceSpecError(
            message=first.get("msg", "Device spec is invalid"),
            context={"required": ["sdkVersion", "supportedAbis"], "errors": len(errors)},
            cause=e,
            field_name=field_name,
        ) from e

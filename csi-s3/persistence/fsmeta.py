"""
Volume storage descriptor persisted next to a volume's files.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


@dataclass
class FSMeta:
    """Where a provisioned volume lives and how it is mounted.

    The JSON field names are shared with the provisioning layer and must
    not change.
    """

    bucket_name: str
    prefix: str = ""
    mounter: str = ""
    mount_options: List[str] = field(default_factory=list)
    capacity_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Name": self.bucket_name,
            "Prefix": self.prefix,
            "Mounter": self.mounter,
            "MountOptions": list(self.mount_options),
            "CapacityBytes": self.capacity_bytes,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FSMeta":
        if not isinstance(data, dict):
            raise TypeError(f"metadata must be a JSON object, got {type(data).__name__}")
        options = data.get("MountOptions") or []
        if not isinstance(options, list):
            raise TypeError("MountOptions must be a list of strings")
        return cls(
            bucket_name=data["Name"],
            prefix=data.get("Prefix", ""),
            mounter=data.get("Mounter", ""),
            mount_options=[str(o) for o in options],
            capacity_bytes=int(data.get("CapacityBytes", 0)),
        )

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "FSMeta":
        return cls.from_dict(json.loads(raw))

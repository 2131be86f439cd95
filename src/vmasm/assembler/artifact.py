"""
Program Image Format
====================

The assembler's output file is a length-prefixed byte stream:

```
Offset  Size  Description
------  ----  -----------
0       4     Code length n (unsigned, little-endian)
4       n     Code bytes
```

There is no magic number, section table, padding or checksum.
"""

import struct
from dataclasses import dataclass
from pathlib import Path


HEADER = struct.Struct("<I")


@dataclass(frozen=True)
class ProgramImage:
    """
    An assembled program as stored on disk.

    Attributes:
        code: The code bytes
    """
    code: bytes = b""

    def __len__(self) -> int:
        return len(self.code)

    def to_bytes(self) -> bytes:
        """Serialize the image: length header followed by the code."""
        return HEADER.pack(len(self.code)) + bytes(self.code)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProgramImage":
        """Parse an image from bytes."""
        if len(data) < HEADER.size:
            raise ValueError(f"program image too short: {len(data)} bytes")

        (length,) = HEADER.unpack_from(data)
        if len(data) < HEADER.size + length:
            raise ValueError(
                f"program image truncated: header says {length} bytes, "
                f"{len(data) - HEADER.size} present"
            )
        return cls(code=bytes(data[HEADER.size:HEADER.size + length]))

    @classmethod
    def from_file(cls, filepath: str | Path) -> "ProgramImage":
        return cls.from_bytes(Path(filepath).read_bytes())

    def write(self, filepath: str | Path) -> None:
        """Write the image to a file."""
        with open(filepath, "wb") as f:
            f.write(self.to_bytes())

"""Encoding detection for byte input.

Detection runs in stages and stops at the first hit: byte order mark, XML
declaration, strict UTF-8 validation, then a ``latin-1`` fallback that can
decode any byte sequence. Decoding itself never raises.
"""

import codecs
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple

# Only the head of the input is searched for a declaration
DECLARATION_SCAN_BYTES = 1024

FALLBACK_ENCODING = "latin-1"

_BOM_CHAR = "\ufeff"


class DetectionMethod(Enum):
    """Enumeration of encoding detection methods."""
    BOM = "bom"
    XML_DECLARATION = "xml_declaration"
    UTF8_VALIDATION = "utf8_validation"
    FALLBACK = "fallback"


@dataclass
class EncodingResult:
    """Result of encoding detection.

    Attributes:
        encoding: Detected encoding name (canonical form)
        confidence: Confidence score from 0.0 to 1.0
        method: Detection method used
        issues: Problems noticed during detection
    """
    encoding: str
    confidence: float
    method: DetectionMethod
    issues: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate confidence score range."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Confidence must be between 0.0 and 1.0, got {self.confidence}"
            )


class EncodingDetector:
    """Multi-stage encoding detector for raw markup bytes."""

    # Longer marks first so UTF-32 LE is not mistaken for UTF-16 LE
    BOM_PATTERNS: ClassVar[Tuple[Tuple[bytes, str], ...]] = (
        (b"\xff\xfe\x00\x00", "utf-32-le"),
        (b"\x00\x00\xfe\xff", "utf-32-be"),
        (b"\xef\xbb\xbf", "utf-8"),
        (b"\xff\xfe", "utf-16-le"),
        (b"\xfe\xff", "utf-16-be"),
    )

    XML_DECLARATION_PATTERN = re.compile(
        rb'<\?xml\s+.*?encoding\s*=\s*["\']([^"\']+)["\'].*?\?>',
        re.IGNORECASE | re.DOTALL
    )

    ALIASES: ClassVar[Dict[str, str]] = {
        "utf8": "utf-8",
        "utf16": "utf-16",
        "utf32": "utf-32",
        "iso-8859-1": "latin-1",
        "windows-1252": "cp1252",
    }

    def detect(self, data: bytes) -> EncodingResult:
        """Detect the encoding of ``data``.

        Args:
            data: Byte data to analyze

        Returns:
            EncodingResult; always returns a usable encoding
        """
        if not data:
            return EncodingResult("utf-8", 1.0, DetectionMethod.FALLBACK)

        for bom, encoding in self.BOM_PATTERNS:
            if data.startswith(bom):
                return EncodingResult(encoding, 1.0, DetectionMethod.BOM)

        declared = self._detect_declaration(data)
        if declared is not None:
            return declared

        try:
            data.decode("utf-8")
        except UnicodeDecodeError as e:
            return EncodingResult(
                FALLBACK_ENCODING,
                0.5,
                DetectionMethod.FALLBACK,
                issues=[f"Invalid UTF-8 at byte {e.start}"]
            )
        return EncodingResult("utf-8", 0.8, DetectionMethod.UTF8_VALIDATION)

    def decode(self, data: bytes, encoding: Optional[str] = None) -> Tuple[str, EncodingResult]:
        """Decode ``data`` to text.

        Args:
            data: Raw bytes
            encoding: Explicit encoding; skips detection when given

        Returns:
            Tuple of decoded text (leading BOM removed) and the detection result
        """
        if encoding:
            result = EncodingResult(self._normalize(encoding), 1.0, DetectionMethod.XML_DECLARATION)
            if not self._is_valid(result.encoding):
                result = EncodingResult(
                    "utf-8", 0.3, DetectionMethod.FALLBACK,
                    issues=[f"Unknown encoding: {encoding}"]
                )
        else:
            result = self.detect(data)

        text = data.decode(result.encoding, errors="replace")
        if text.startswith(_BOM_CHAR):
            text = text[1:]
        return text, result

    def _detect_declaration(self, data: bytes) -> Optional[EncodingResult]:
        match = self.XML_DECLARATION_PATTERN.search(data[:DECLARATION_SCAN_BYTES])
        if not match:
            return None

        declared = match.group(1).decode("ascii", errors="ignore").lower()
        normalized = self._normalize(declared)
        if not self._is_valid(normalized):
            return EncodingResult(
                "utf-8",
                0.3,
                DetectionMethod.XML_DECLARATION,
                issues=[f"Invalid declared encoding: {declared}"]
            )
        return EncodingResult(normalized, 0.9, DetectionMethod.XML_DECLARATION)

    def _normalize(self, encoding: str) -> str:
        encoding = encoding.strip().lower()
        return self.ALIASES.get(encoding, encoding)

    def _is_valid(self, encoding: str) -> bool:
        """Check if encoding is supported by Python codecs."""
        try:
            codecs.lookup(encoding)
        except LookupError:
            return False
        else:
            return True

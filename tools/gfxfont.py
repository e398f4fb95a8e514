"""
Adafruit GFX font data model and header loader.

A GFX font is three related C declarations:
  - uint8_t  <name>Bitmaps[]  packed 1-bit glyph bitmaps, concatenated
  - GFXglyph <name>Glyphs[]   { bitmapOffset, width, height, xAdvance, xOffset, yOffset }
  - GFXfont  <name>           { bitmaps, glyphs, first, last, yAdvance }

A glyph's bitmap runs from its bitmapOffset up to the offset of the next
glyph; only start offsets are stored.
"""

import re
from dataclasses import dataclass, field
from typing import Optional


RANGE_BASE = 0x20   # space
GLYPH_COUNT = 95    # printable ASCII, 0x20..0x7E

HEADER_SUFFIXES = ('.h', '.hpp', '.c', '.cpp', '.txt')


class FontError(Exception):
    """Base class for font loading and shrinking failures."""


class MalformedFontError(FontError):
    """The source font is structurally inconsistent."""


class EmptySubsetError(FontError):
    """No wanted character falls inside the font's range."""


@dataclass
class Glyph:
    """Per-character metrics plus a start offset into the bitmap buffer."""
    bitmap_offset: int
    width: int
    height: int
    x_advance: int
    x_offset: int
    y_offset: int

    @property
    def packed_size(self) -> int:
        """Bytes needed for width*height bits, rounded up."""
        return (self.width * self.height + 7) // 8

    @property
    def is_blank(self) -> bool:
        """Blank glyphs point at the reserved byte and own no bitmap data."""
        return self.bitmap_offset == 0 and self.width == 0 and self.height == 0

    def as_tuple(self) -> tuple[int, int, int, int, int, int]:
        return (self.bitmap_offset, self.width, self.height,
                self.x_advance, self.x_offset, self.y_offset)


@dataclass
class GFXFont:
    """A font descriptor with its bitmap buffer and glyph table."""
    name: str
    bitmap: bytes
    glyphs: list[Glyph] = field(default_factory=list)
    first: int = RANGE_BASE
    last: int = RANGE_BASE + GLYPH_COUNT - 1
    y_advance: int = 0

    def codes(self) -> range:
        return range(self.first, self.last + 1)

    def glyph_for(self, code: int) -> Optional[Glyph]:
        if self.first <= code <= self.last:
            return self.glyphs[code - self.first]
        return None

    @property
    def glyph_table_size(self) -> int:
        """Size in bytes of the glyph array on the target (7 bytes per GFXglyph)."""
        return len(self.glyphs) * 7


# --- Validation --------------------------------------------------------------

_FIELD_LIMITS = (
    ('bitmapOffset', 0, 0xFFFF),
    ('width', 0, 0xFF),
    ('height', 0, 0xFF),
    ('xAdvance', 0, 0xFF),
    ('xOffset', -128, 127),
    ('yOffset', -128, 127),
)


def describe_code(code: int) -> str:
    """Render a character code the way the glyph table comments do."""
    if 0x20 <= code <= 0x7E:
        return f"0x{code:02X} '{chr(code)}'"
    return f"0x{code:02X}"


def validate_font(font: GFXFont) -> None:
    """Raise MalformedFontError if the font cannot be compacted safely."""
    if font.first > font.last:
        raise MalformedFontError(
            f"{font.name}: first character 0x{font.first:02X} is above last 0x{font.last:02X}")
    if font.first < 0 or font.last > 0xFF:
        raise MalformedFontError(
            f"{font.name}: character range 0x{font.first:X}..0x{font.last:X} "
            f"does not fit in a single byte")

    expected = font.last - font.first + 1
    if len(font.glyphs) != expected:
        raise MalformedFontError(
            f"{font.name}: glyph count mismatch: descriptor covers {expected} "
            f"characters but the glyph table has {len(font.glyphs)} entries")

    for index, value in enumerate(font.bitmap):
        if not 0 <= value <= 0xFF:
            raise MalformedFontError(
                f"{font.name}: bitmap element {index} ({value}) is not a byte")

    bitmap_length = len(font.bitmap)
    previous: Optional[tuple[int, Glyph]] = None
    for code, glyph in zip(font.codes(), font.glyphs):
        for (label, low, high), value in zip(_FIELD_LIMITS, glyph.as_tuple()):
            if not low <= value <= high:
                raise MalformedFontError(
                    f"{font.name}: glyph {describe_code(code)} {label}={value} "
                    f"is outside {low}..{high}")

        if glyph.bitmap_offset > bitmap_length:
            raise MalformedFontError(
                f"{font.name}: glyph {describe_code(code)} offset {glyph.bitmap_offset} "
                f"is past the end of the {bitmap_length}-byte bitmap")

        if glyph.is_blank:
            continue

        if previous is not None:
            prev_code, prev_glyph = previous
            if glyph.bitmap_offset < prev_glyph.bitmap_offset:
                raise MalformedFontError(
                    f"{font.name}: offsets are not monotonic: glyph {describe_code(code)} "
                    f"starts at {glyph.bitmap_offset}, before glyph "
                    f"{describe_code(prev_code)} at {prev_glyph.bitmap_offset}")
            _check_extent(font, prev_code, prev_glyph, glyph.bitmap_offset)
        previous = (code, glyph)

    if previous is not None:
        _check_extent(font, previous[0], previous[1], bitmap_length)


def _check_extent(font: GFXFont, code: int, glyph: Glyph, end: int) -> None:
    available = end - glyph.bitmap_offset
    if available < glyph.packed_size:
        raise MalformedFontError(
            f"{font.name}: glyph {describe_code(code)} needs {glyph.packed_size} bytes "
            f"for {glyph.width}x{glyph.height} pixels but only {available} are available")


# --- Header loading ----------------------------------------------------------

_block_comment = re.compile(r'/\*.*?\*/', re.DOTALL)
_line_comment = re.compile(r'//[^\n]*')
_font_pattern = re.compile(
    r'GFXfont\s+(\w+)\s*(?:PROGMEM\s*)?=\s*\{([^}]*)\}', re.DOTALL)
_cast_pattern = re.compile(r'\)\s*&?\s*(\w+)')
_record_pattern = re.compile(r'\{([^{}]*)\}')


def _array_pattern(type_name: str, array_name: str):
    return re.compile(
        type_name + r'\s+' + re.escape(array_name) +
        r'\s*\[[^\]]*\]\s*(?:PROGMEM\s*)?=\s*\{(.*?)\}\s*;',
        re.DOTALL)


def parse_int(token: str) -> int:
    """Parse a C integer literal (decimal, hex or octal-looking decimal)."""
    token = token.strip()
    try:
        return int(token, 0)
    except ValueError:
        # "07" is not valid for base 0
        return int(token, 10)


def _parse_ints(body: str, what: str) -> list[int]:
    tokens = [t for t in (p.strip() for p in body.split(',')) if t]
    try:
        return [parse_int(t) for t in tokens]
    except ValueError as e:
        raise MalformedFontError(f"unparsable integer in {what}: {e}") from None


def strip_comments(text: str) -> str:
    return _line_comment.sub('', _block_comment.sub('', text))


def parse_gfx_header(text: str, name: Optional[str] = None) -> GFXFont:
    """
    Parse an Adafruit GFX font header into a GFXFont.

    The PROGMEM qualifier is optional everywhere. If the header declares
    several fonts, `name` picks one; otherwise the first descriptor wins.
    """
    code = strip_comments(text)

    descriptors = list(_font_pattern.finditer(code))
    if not descriptors:
        raise MalformedFontError("no GFXfont declaration found")
    if name is None:
        match = descriptors[0]
    else:
        match = next((m for m in descriptors if m.group(1) == name), None)
        if match is None:
            found = ', '.join(m.group(1) for m in descriptors)
            raise MalformedFontError(f"no GFXfont named {name} (found: {found})")

    font_name = match.group(1)
    fields = [p.strip() for p in match.group(2).split(',') if p.strip()]
    if len(fields) < 5:
        raise MalformedFontError(
            f"{font_name}: descriptor has {len(fields)} fields, expected 5")

    bitmap_name = _referenced_name(fields[0], font_name, 'bitmap')
    glyph_name = _referenced_name(fields[1], font_name, 'glyph')
    first, last, y_advance = _parse_ints(','.join(fields[2:5]), f"{font_name} descriptor")

    bitmap_match = _array_pattern(r'uint8_t', bitmap_name).search(code)
    if not bitmap_match:
        raise MalformedFontError(f"{font_name}: bitmap array {bitmap_name} not found")
    bitmap = _parse_ints(bitmap_match.group(1), bitmap_name)
    for index, value in enumerate(bitmap):
        if not 0 <= value <= 0xFF:
            raise MalformedFontError(
                f"{font_name}: {bitmap_name}[{index}] = {value} is not a byte")

    glyph_match = _array_pattern(r'GFXglyph', glyph_name).search(code)
    if not glyph_match:
        raise MalformedFontError(f"{font_name}: glyph array {glyph_name} not found")

    glyphs = []
    for index, record in enumerate(_record_pattern.finditer(glyph_match.group(1))):
        values = _parse_ints(record.group(1), f"{glyph_name}[{index}]")
        if len(values) != 6:
            raise MalformedFontError(
                f"{glyph_name}[{index}] has {len(values)} fields, expected 6")
        glyphs.append(Glyph(*values))

    return GFXFont(
        name=font_name,
        bitmap=bytes(bitmap),
        glyphs=glyphs,
        first=first,
        last=last,
        y_advance=y_advance,
    )


def _referenced_name(field_text: str, font_name: str, what: str) -> str:
    cast = _cast_pattern.search(field_text)
    if cast:
        return cast.group(1)
    if re.fullmatch(r'\w+', field_text):
        return field_text
    raise MalformedFontError(f"{font_name}: cannot read {what} array reference {field_text!r}")


def load_header(path) -> GFXFont:
    """Read and parse a GFX font header file."""
    with open(path, 'r', errors='replace') as f:
        return parse_gfx_header(f.read())


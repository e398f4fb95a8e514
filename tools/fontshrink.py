#!/usr/bin/env python3
"""
Shrink an Adafruit GFX font to the characters you actually use.

Only the bitmaps of wanted glyphs are kept. They are repacked after a
single reserved 0x00 byte at offset 0, which every dropped glyph points
at with zero width and height. The glyph table is trimmed to the first
and last wanted characters, and the result is written as a GFX font
header (all three declarations PROGMEM) ready to include in a sketch.

Usage:
    python3 fontshrink.py FreeSansBold24pt7b.h -c "0123456789ABCDEF:/" > FreeSansBold24pt7b-mini.h
    python3 fontshrink.py font.bdf -f ui_strings.txt -n TinyFont -o tiny_font.h
"""

import sys
import argparse
import logging
from typing import Iterable, Optional

from gfxfont import (
    GFXFont, Glyph, FontError, EmptySubsetError,
    RANGE_BASE, describe_code, validate_font, parse_int,
)
from font_import import load_font

logger = logging.getLogger(__name__)

BYTES_PER_ROW = 12


# --- Selector ----------------------------------------------------------------

def wanted_codes(chars: Iterable[str]) -> frozenset[int]:
    """The set of character codes in a string (or any iterable of characters)."""
    return frozenset(ord(c) for c in chars)


def is_wanted(char_code: int, wanted: frozenset[int]) -> bool:
    """Exact code point membership; no case folding, no ranges."""
    return char_code in wanted


# --- Compactor / extent tracker ----------------------------------------------

def blank_metrics(font: GFXFont) -> tuple[int, int]:
    """
    Default xAdvance and yOffset for dropped glyphs.

    Taken from the first glyph that advances the pen, looking at the space
    glyph, then glyphs dropped by an earlier shrink, then the rest in order.
    Imported fonts fill characters they lack with zero-advance placeholders,
    which are passed over. If nothing advances, the first glyph is used.
    """
    space = font.glyph_for(RANGE_BASE)
    candidates = [space] if space is not None else []
    candidates += [g for g in font.glyphs if g.is_blank]
    candidates += font.glyphs
    glyph = next((g for g in candidates if g.x_advance > 0), font.glyphs[0])
    return glyph.x_advance, glyph.y_offset


def source_extent(font: GFXFont, index: int) -> tuple[int, int]:
    """
    Byte range [start, end) of a glyph's bitmap in the source buffer.

    The end is the start of the next glyph that owns bitmap data. Blank
    glyphs own nothing. The last glyph ends at the buffer length, minus
    any trailing padding past its packed size.
    """
    glyph = font.glyphs[index]
    start = glyph.bitmap_offset
    if glyph.is_blank:
        return start, start

    for following in font.glyphs[index + 1:]:
        if not following.is_blank:
            return start, following.bitmap_offset

    return start, min(len(font.bitmap), start + glyph.packed_size)


def shrink_font(font: GFXFont, wanted: frozenset[int],
                blank_advance: Optional[int] = None,
                blank_y_offset: Optional[int] = None,
                log: Optional[logging.Logger] = None) -> GFXFont:
    """
    Return a copy of `font` holding only the glyphs whose codes are in `wanted`.

    The source is validated first, so a malformed font raises
    MalformedFontError and an empty selection raises EmptySubsetError
    before anything is built. The returned font's glyph table runs from
    the lowest to the highest wanted code; its bitmap starts with the
    reserved blank byte.
    """
    log = log or logger
    validate_font(font)

    default_advance, default_y_offset = blank_metrics(font)
    if blank_advance is None:
        blank_advance = default_advance
    if blank_y_offset is None:
        blank_y_offset = default_y_offset

    for code in sorted(c for c in wanted if font.glyph_for(c) is None):
        log.debug("Ignoring wanted character 0x%X: outside %s..%s",
                  code, describe_code(font.first), describe_code(font.last))

    log.debug("Old bitmap size: %d bytes. Old glyph table: %d glyphs",
              len(font.bitmap), len(font.glyphs))

    # Offset 0 is the shared bitmap of every dropped glyph
    new_bitmap = bytearray(b'\x00')
    new_glyphs = []
    first_usable = None
    last_usable = None

    for index, glyph in enumerate(font.glyphs):
        char_code = font.first + index

        if not is_wanted(char_code, wanted):
            new_glyphs.append(Glyph(0, 0, 0, blank_advance, 0, blank_y_offset))
            log.debug("Glyph %s: not needed", describe_code(char_code))
            continue

        start, end = source_extent(font, index)
        new_glyphs.append(Glyph(
            bitmap_offset=len(new_bitmap),
            width=glyph.width,
            height=glyph.height,
            x_advance=glyph.x_advance,
            x_offset=glyph.x_offset,
            y_offset=glyph.y_offset,
        ))
        new_bitmap.extend(font.bitmap[start:end])
        log.debug("Glyph %s: offset %d -> %d, %dx%d, source bytes %d..%d",
                  describe_code(char_code), start, new_glyphs[-1].bitmap_offset,
                  glyph.width, glyph.height, start, end)

        if first_usable is None:
            first_usable = char_code
        last_usable = char_code

    if first_usable is None:
        raise EmptySubsetError(
            f"{font.name}: none of the wanted characters are in "
            f"{describe_code(font.first)}..{describe_code(font.last)}")

    log.debug("First usable char: %s  Last usable char: %s",
              describe_code(first_usable), describe_code(last_usable))

    return GFXFont(
        name=font.name,
        bitmap=bytes(new_bitmap),
        glyphs=new_glyphs[first_usable - font.first:last_usable - font.first + 1],
        first=first_usable,
        last=last_usable,
        y_advance=font.y_advance,
    )


# --- Emitter -----------------------------------------------------------------

def format_bitmap(font: GFXFont) -> str:
    """
    The bitmap array declaration.

    A line break follows value 12, 24, 36 and so on, and a trailing 0x00
    pad element closes the array, so it is always one byte longer than
    the font's bitmap.
    """
    lines = [f"const uint8_t {font.name}Bitmaps[] PROGMEM = {{\n"]
    for i, value in enumerate(font.bitmap):
        lines.append(f"0x{value:02X}, ")
        if i > 0 and i % BYTES_PER_ROW == 0:
            lines.append("\n")
    lines.append("0x00 };\n\n")
    return ''.join(lines)


def format_glyph(glyph: Glyph, char_code: int, last: bool = False) -> str:
    # Only printable ASCII is quoted in the trailing comment
    fields = ', '.join(f"{v:4d}" for v in glyph.as_tuple())
    closing = " } };" if last else " },"
    return f"{{ {fields}{closing} // {describe_code(char_code)}\n"


def format_glyphs(font: GFXFont) -> str:
    lines = [f"const GFXglyph {font.name}Glyphs[] PROGMEM = {{\n"]
    for index, glyph in enumerate(font.glyphs):
        lines.append(format_glyph(glyph, font.first + index, last=index == len(font.glyphs) - 1))
    lines.append("\n")
    return ''.join(lines)


def format_descriptor(font: GFXFont) -> str:
    return (f"const GFXfont {font.name} PROGMEM = {{\n"
            f"(uint8_t  *){font.name}Bitmaps,\n"
            f"(GFXglyph *){font.name}Glyphs,\n"
            f"0x{font.first:02X}, 0x{font.last:02X}, {font.y_advance} }};\n")


def emit_font(font: GFXFont) -> str:
    """Render the bitmap, glyph and font declarations, in that order."""
    return format_bitmap(font) + format_glyphs(font) + format_descriptor(font)


# --- Command line ------------------------------------------------------------

def read_wanted(chars: Optional[str], chars_file: Optional[str]) -> frozenset[int]:
    """Combine -c characters and the contents of -f (line breaks ignored)."""
    text = chars or ''
    if chars_file:
        try:
            with open(chars_file, 'r', encoding='utf-8') as f:
                text += f.read().replace('\r', '').replace('\n', '')
        except UnicodeDecodeError as e:
            raise FontError(f"{chars_file}: not UTF-8 text ({e.reason} at byte {e.start})") from e
    return wanted_codes(text)


def summarize(source: GFXFont, shrunk: GFXFont) -> None:
    old_size = len(source.bitmap) + source.glyph_table_size
    # +1 for the emitted pad byte
    new_size = len(shrunk.bitmap) + 1 + shrunk.glyph_table_size
    savings = old_size - new_size
    logger.info("Kept %d of %d glyphs (%s..%s)",
                sum(1 for g in shrunk.glyphs if not g.is_blank),
                len(source.glyphs), describe_code(shrunk.first), describe_code(shrunk.last))
    logger.info("Input size:  %s bytes", f"{old_size:,}")
    logger.info("Output size: %s bytes", f"{new_size:,}")
    if old_size:
        logger.info("Savings:     %s bytes (%.1f%%)", f"{savings:,}", 100 * savings / old_size)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Strip unused glyphs from an Adafruit GFX font')
    parser.add_argument('font_path', help='Source font: GFX header (.h), BDF or OTB')
    parser.add_argument('-c', '--chars', help='Characters to keep')
    parser.add_argument('-f', '--chars-file', help='File whose characters are kept (line breaks ignored)')
    parser.add_argument('-n', '--name', help='Font name for generated code (default: source font name)')
    parser.add_argument('-o', '--output', help='Output header path (default: stdout)')
    parser.add_argument('--blank-advance', type=parse_int,
                        help='xAdvance of dropped glyphs (default: the space glyph\'s)')
    parser.add_argument('--blank-y-offset', type=parse_int,
                        help='yOffset of dropped glyphs (default: the space glyph\'s)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Print debug messages to stderr')
    args = parser.parse_args(argv)

    if args.chars is None and args.chars_file is None:
        parser.error('one of -c/--chars or -f/--chars-file is required')

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s: %(message)s')

    try:
        wanted = read_wanted(args.chars, args.chars_file)
        source = load_font(args.font_path)
        shrunk = shrink_font(source, wanted, args.blank_advance, args.blank_y_offset)
        if args.name:
            shrunk.name = args.name
        header = emit_font(shrunk)
    except (OSError, FontError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    summarize(source, shrunk)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(header)
        logger.info("Wrote %s", args.output)
    else:
        sys.stdout.write(header)


if __name__ == '__main__':
    main()

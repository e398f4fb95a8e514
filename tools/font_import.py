#!/usr/bin/env python3
"""
Load a source font for shrinking from a GFX header, a BDF file or an OTB bitmap font.

BDF and OTB glyphs are repacked the way Adafruit fontconvert lays out a
GFX font: each glyph's pixels form one continuous MSB-first bit stream,
rows back to back, padded to a whole byte at the end of the glyph.

Usage:
    python3 font_import.py <font.h|font.bdf|font.otb> [-o output.h] [-n NAME]
"""

import re
import sys
import argparse
import logging
from pathlib import Path

from gfxfont import (
    GFXFont, Glyph, FontError, MalformedFontError,
    RANGE_BASE, GLYPH_COUNT, HEADER_SUFFIXES, load_header, validate_font,
)

logger = logging.getLogger(__name__)

STRIKE_SUFFIXES = ('.otb', '.ttf', '.otf')

LAST_CHAR = RANGE_BASE + GLYPH_COUNT - 1


def font_name_from_path(font_path) -> str:
    """Derive a C identifier from a font file name."""
    stem = re.sub(r'\W', '_', Path(font_path).stem)
    return stem if not stem[:1].isdigit() else '_' + stem


def pack_rows(rows, width):
    """
    Pack glyph rows into GFX bitmap bytes.

    Each row is an int whose bit (width - 1 - x) is pixel x, i.e. the
    leftmost pixel is the most significant bit.
    """
    packed = bytearray()
    acc = 0
    nbits = 0
    for row in rows:
        for x in range(width):
            acc = (acc << 1) | ((row >> (width - 1 - x)) & 1)
            nbits += 1
            if nbits == 8:
                packed.append(acc)
                acc = 0
                nbits = 0
    if nbits:
        packed.append(acc << (8 - nbits))
    return bytes(packed)


def build_font(name, glyph_data, y_advance):
    """
    Assemble a GFXFont covering 0x20..0x7E from per-character glyph data.

    glyph_data maps a character code to a dict with width, height,
    x_advance, x_offset, y_offset and rows. Missing codes become
    zero-size glyphs at the current offset.
    """
    bitmap = bytearray()
    glyphs = []
    for char_code in range(RANGE_BASE, LAST_CHAR + 1):
        data = glyph_data.get(char_code)
        if data is None:
            glyphs.append(Glyph(len(bitmap), 0, 0, 0, 0, 0))
            continue
        glyphs.append(Glyph(
            bitmap_offset=len(bitmap),
            width=data['width'],
            height=data['height'],
            x_advance=data['x_advance'],
            x_offset=data['x_offset'],
            y_offset=data['y_offset'],
        ))
        bitmap.extend(pack_rows(data['rows'], data['width']))

    logger.debug("Packed %d glyphs into %d bitmap bytes", len(glyph_data), len(bitmap))
    return GFXFont(
        name=name,
        bitmap=bytes(bitmap),
        glyphs=glyphs,
        first=RANGE_BASE,
        last=LAST_CHAR,
        y_advance=y_advance,
    )


def parse_bdf(content, name='font'):
    """Parse BDF source text into a GFXFont."""
    ascent = re.search(r'^FONT_ASCENT\s+(-?\d+)', content, re.MULTILINE)
    descent = re.search(r'^FONT_DESCENT\s+(-?\d+)', content, re.MULTILINE)
    bbox = re.search(r'^FONTBOUNDINGBOX\s+(\d+)\s+(\d+)', content, re.MULTILINE)
    if ascent and descent:
        y_advance = int(ascent.group(1)) + int(descent.group(1))
    elif bbox:
        y_advance = int(bbox.group(2))
    else:
        raise MalformedFontError(f"{name}: BDF has neither FONT_ASCENT/FONT_DESCENT nor FONTBOUNDINGBOX")

    glyph_data = {}
    char_pattern = re.compile(r'^STARTCHAR[^\n]*\n(.*?)^ENDCHAR', re.MULTILINE | re.DOTALL)
    for match in char_pattern.finditer(content):
        block = match.group(1)
        encoding = re.search(r'^ENCODING\s+(-?\d+)', block, re.MULTILINE)
        if not encoding:
            continue
        char_code = int(encoding.group(1))
        if char_code < RANGE_BASE or char_code > LAST_CHAR:
            continue

        bbx = re.search(r'^BBX\s+(\d+)\s+(\d+)\s+(-?\d+)\s+(-?\d+)', block, re.MULTILINE)
        dwidth = re.search(r'^DWIDTH\s+(-?\d+)', block, re.MULTILINE)
        bitmap = re.search(r'^BITMAP[ \t]*\n(.*)', block, re.MULTILINE | re.DOTALL)
        if not bbx or not bitmap:
            raise MalformedFontError(f"{name}: glyph 0x{char_code:02X} is missing BBX or BITMAP")

        width, height, x_off, y_off = (int(v) for v in bbx.groups())
        hex_rows = [r.strip() for r in bitmap.group(1).split('\n') if r.strip()]
        if len(hex_rows) < height:
            raise MalformedFontError(
                f"{name}: glyph 0x{char_code:02X} has {len(hex_rows)} bitmap rows, expected {height}")

        rows = []
        for hex_row in hex_rows[:height]:
            # BDF rows are left-aligned and padded to whole bytes
            row_bits = len(hex_row) * 4
            try:
                value = int(hex_row, 16)
            except ValueError:
                raise MalformedFontError(
                    f"{name}: glyph 0x{char_code:02X} has a bad bitmap row {hex_row!r}") from None
            rows.append(value >> (row_bits - width) if row_bits >= width else 0)

        glyph_data[char_code] = {
            'width': width,
            'height': height,
            'x_advance': int(dwidth.group(1)) if dwidth else width,
            'x_offset': x_off,
            'y_offset': -(y_off + height),
            'rows': rows,
        }

    if not glyph_data:
        raise FontError(f"{name}: no glyphs between 0x{RANGE_BASE:02X} and 0x{LAST_CHAR:02X}")
    return build_font(name, glyph_data, y_advance)


def load_bdf_font(font_path, name=None):
    """Load a BDF bitmap font as a GFXFont."""
    with open(font_path, 'r', errors='replace') as f:
        content = f.read()
    return parse_bdf(content, name or font_name_from_path(font_path))


def _strike_metrics(strike, glyph_name, glyph):
    """Metrics live on the glyph itself, or on the index subtable for constant-metric formats."""
    for subtable in strike.indexSubTables:
        if glyph_name in subtable.names and hasattr(subtable, 'metrics'):
            return subtable.metrics
    return glyph.metrics


def _metric(metrics, *names):
    for attr in names:
        if hasattr(metrics, attr):
            return getattr(metrics, attr)
    raise AttributeError(names[0])


def load_otb_font(font_path, name=None):
    """Load the first embedded bitmap strike of an OTB/TTF font as a GFXFont."""
    from fontTools.ttLib import TTFont

    name = name or font_name_from_path(font_path)
    try:
        font = TTFont(font_path)
    except Exception as e:
        raise FontError(f"{name}: cannot read font: {e}") from e

    try:
        if 'EBDT' not in font or 'EBLC' not in font:
            raise FontError(f"{name}: font has no embedded bitmap strike (EBDT/EBLC)")

        cmap = font.getBestCmap() or {}
        strike = font['EBLC'].strikes[0]
        strike_glyphs = font['EBDT'].strikeData[0]
        hori = strike.bitmapSizeTable.hori
        y_advance = hori.ascender - hori.descender

        glyph_data = {}
        for char_code in range(RANGE_BASE, LAST_CHAR + 1):
            glyph_name = cmap.get(char_code)
            glyph = strike_glyphs.get(glyph_name) if glyph_name else None
            if glyph is None:
                continue

            metrics = _strike_metrics(strike, glyph_name, glyph)
            width = metrics.width
            height = metrics.height
            rows = [int.from_bytes(glyph.getRow(y, metrics=metrics), 'big') >> (((width + 7) // 8) * 8 - width)
                    for y in range(height)]

            glyph_data[char_code] = {
                'width': width,
                'height': height,
                'x_advance': _metric(metrics, 'horiAdvance', 'Advance'),
                'x_offset': _metric(metrics, 'horiBearingX', 'BearingX'),
                'y_offset': -_metric(metrics, 'horiBearingY', 'BearingY'),
                'rows': rows,
            }
    finally:
        font.close()

    if not glyph_data:
        raise FontError(f"{name}: no bitmap glyphs between 0x{RANGE_BASE:02X} and 0x{LAST_CHAR:02X}")
    return build_font(name, glyph_data, y_advance)


def load_font(font_path):
    """Load a source font, picking the reader from the file suffix."""
    font_path = Path(font_path)
    suffix = font_path.suffix.lower()
    if suffix in HEADER_SUFFIXES:
        return load_header(font_path)
    if suffix == '.bdf':
        return load_bdf_font(font_path)
    if suffix in STRIKE_SUFFIXES:
        return load_otb_font(font_path)
    raise FontError(f"don't know how to read {font_path.name} (expected a GFX header, BDF or OTB font)")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Convert a BDF or OTB bitmap font to an Adafruit GFX header')
    parser.add_argument('font_path', help='Path to a BDF, OTB or GFX header font')
    parser.add_argument('-o', '--output', help='Output header path (default: stdout)')
    parser.add_argument('-n', '--name', help='Font name for generated code')
    parser.add_argument('-v', '--verbose', action='store_true', help='Print debug messages to stderr')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s: %(message)s')

    # Imported here: fontshrink imports this module
    from fontshrink import emit_font

    try:
        font = load_font(args.font_path)
        if args.name:
            font.name = args.name
        validate_font(font)
        header = emit_font(font)
    except (OSError, FontError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(header)
        print(f"Generated {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(header)


if __name__ == '__main__':
    main()

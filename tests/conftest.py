"""
Shared fixtures: a synthetic 95-glyph font laid out the way Adafruit
fontconvert lays out real ones, and a small hand-written GFX header.
"""

import pytest

from gfxfont import GFXFont, Glyph, RANGE_BASE, GLYPH_COUNT


MINI_FONT_HEADER = """\
/* MiniFont: digits 0-3 { only } */
const uint8_t MiniFontBitmaps[] PROGMEM = {
  0xF9, 0xF0, 0xFF, 0x96, 0x69, 0xFF, 0x81, 0x81, 0xFF };

const GFXglyph MiniFontGlyphs[] PROGMEM = {
  {     0,   4,   3,   5,    0,   -3 },   // 0x30 '0'
  {     2,   2,   4,   3,    0,   -4 },   // 0x31 '1' }
  {     3,   4,   4,   5,    0,   -4 },   // 0x32 '2' {
  {     5,   8,   4,   9,    0,   -4 } }; // 0x33 '3'

const GFXfont MiniFont PROGMEM = {
  (uint8_t  *)MiniFontBitmaps,
  (GFXglyph *)MiniFontGlyphs,
  0x30, 0x33, 10 };

// Approx. 41 bytes
"""


def make_font(name='TestSans12pt7b'):
    """A printable-ASCII font with a blank space glyph and distinct bitmap bytes per glyph."""
    bitmap = bytearray()
    glyphs = []
    for code in range(RANGE_BASE, RANGE_BASE + GLYPH_COUNT):
        if code == 0x20:
            glyphs.append(Glyph(0, 0, 0, 13, 0, 1))
            continue
        width = 3 + code % 5
        height = 4 + code % 7
        glyphs.append(Glyph(len(bitmap), width, height, width + 2, code % 3 - 1, -height))
        size = (width * height + 7) // 8
        bitmap.extend((code * 31 + k) & 0xFF for k in range(size))
    return GFXFont(name, bytes(bitmap), glyphs, 0x20, 0x7E, 29)


def glyph_bytes(font, code):
    """The packed bitmap bytes of one glyph."""
    glyph = font.glyph_for(code)
    return font.bitmap[glyph.bitmap_offset:glyph.bitmap_offset + glyph.packed_size]


@pytest.fixture
def font():
    return make_font()


@pytest.fixture
def mini_header():
    return MINI_FONT_HEADER


@pytest.fixture
def mini_header_path(tmp_path):
    path = tmp_path / 'MiniFont.h'
    path.write_text(MINI_FONT_HEADER)
    return path


# Byte-aligned rows (EBDT image format 1): 'A' is 5x3 on the baseline,
# 'g' is 4x4 with two rows below it. The strike has no space glyph.
OTB_GLYPHS = {
    'A': dict(width=5, height=3, bearing_x=0, bearing_y=3, advance=6, rows=[0x70, 0x88, 0xF8]),
    'g': dict(width=4, height=4, bearing_x=1, bearing_y=2, advance=6, rows=[0x70, 0x90, 0x70, 0xE0]),
}


def _line_metrics(ascender, descender, width_max):
    from fontTools.ttLib.tables.E_B_L_C_ import SbitLineMetrics

    metrics = SbitLineMetrics()
    metrics.ascender = ascender
    metrics.descender = descender
    metrics.widthMax = width_max
    for attr in ('caretSlopeNumerator', 'caretSlopeDenominator', 'caretOffset',
                 'minOriginSB', 'minAdvanceSB', 'maxBeforeBL', 'minAfterBL', 'pad1', 'pad2'):
        setattr(metrics, attr, 0)
    return metrics


def make_otb(path, with_strike=True):
    """Write a tiny 8 ppem bitmap-only font through fontTools."""
    from fontTools.fontBuilder import FontBuilder
    from fontTools.pens.ttGlyphPen import TTGlyphPen
    from fontTools.ttLib import newTable
    from fontTools.ttLib.tables.BitmapGlyphMetrics import SmallGlyphMetrics
    from fontTools.ttLib.tables.E_B_D_T_ import ebdt_bitmap_format_1
    from fontTools.ttLib.tables.E_B_L_C_ import Strike, eblc_index_sub_table_1

    glyph_order = ['.notdef', 'space', 'A', 'g']
    builder = FontBuilder(1000, isTTF=True)
    builder.setupGlyphOrder(glyph_order)
    builder.setupCharacterMap({0x20: 'space', 0x41: 'A', 0x67: 'g'})
    builder.setupGlyf({name: TTGlyphPen(None).glyph() for name in glyph_order})
    builder.setupHorizontalMetrics({name: (750, 0) for name in glyph_order})
    builder.setupHorizontalHeader(ascent=875, descent=-125)
    builder.setupPost()

    if with_strike:
        bitmaps = {}
        for name, spec in OTB_GLYPHS.items():
            metrics = SmallGlyphMetrics()
            metrics.width = spec['width']
            metrics.height = spec['height']
            metrics.BearingX = spec['bearing_x']
            metrics.BearingY = spec['bearing_y']
            metrics.Advance = spec['advance']
            bitmap = ebdt_bitmap_format_1(None, None)
            bitmap.metrics = metrics
            bitmap.imageData = bytes(spec['rows'])
            bitmaps[name] = bitmap

        ebdt = newTable('EBDT')
        ebdt.version = 2.0
        ebdt.strikeData = [bitmaps]

        index = eblc_index_sub_table_1(None, None)
        index.indexFormat = 1
        index.imageFormat = 1
        index.names = list(OTB_GLYPHS)

        strike = Strike()
        size = strike.bitmapSizeTable
        size.hori = _line_metrics(7, -1, 6)
        size.vert = _line_metrics(0, 0, 0)
        size.colorRef = 0
        size.ppemX = size.ppemY = 8
        size.bitDepth = 1
        size.flags = 1
        strike.indexSubTables = [index]

        eblc = newTable('EBLC')
        eblc.version = 2.0
        eblc.strikes = [strike]

        builder.font['EBDT'] = ebdt
        builder.font['EBLC'] = eblc

    builder.save(str(path))
    return path


@pytest.fixture
def otb_path(tmp_path):
    return make_otb(tmp_path / 'tiny-8.otb')

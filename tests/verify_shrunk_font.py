#!/usr/bin/env python3
"""
Verify a shrunk GFX font header against the font it was made from.

Every glyph present in the shrunk header must either carry the source
glyph's metrics and bitmap bytes, or be a blank glyph pointing at the
reserved byte at offset 0.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'tools'))

from font_import import load_font
from gfxfont import describe_code


def compare_fonts(source, shrunk):
    """Return a list of mismatch descriptions (empty when the shrunk font is faithful)."""
    errors = []

    if shrunk.bitmap[:1] != b'\x00':
        errors.append("bitmap does not start with the reserved 0x00 byte")
    if shrunk.y_advance != source.y_advance:
        errors.append(f"yAdvance mismatch: {source.y_advance} vs {shrunk.y_advance}")

    for char_code in shrunk.codes():
        new = shrunk.glyph_for(char_code)
        old = source.glyph_for(char_code)
        label = describe_code(char_code)

        if old is None:
            errors.append(f"{label}: not in source range")
            continue

        if new.is_blank:
            continue

        if new.as_tuple()[1:] != old.as_tuple()[1:]:
            errors.append(f"{label}: metrics {new.as_tuple()[1:]} differ from source {old.as_tuple()[1:]}")
            continue

        size = old.packed_size
        old_bytes = source.bitmap[old.bitmap_offset:old.bitmap_offset + size]
        new_bytes = shrunk.bitmap[new.bitmap_offset:new.bitmap_offset + size]
        if old_bytes != new_bytes:
            errors.append(f"{label}: bitmap bytes at {new.bitmap_offset} differ from source at {old.bitmap_offset}")

    return errors


def main():
    if len(sys.argv) != 3:
        print(f"Usage: {sys.argv[0]} <source-font> <shrunk.h>")
        sys.exit(1)

    source_path = sys.argv[1]
    shrunk_path = sys.argv[2]

    print(f"Loading {source_path}...")
    source = load_font(source_path)

    print(f"Loading {shrunk_path}...")
    shrunk = load_font(shrunk_path)

    kept = [c for c in shrunk.codes() if not shrunk.glyph_for(c).is_blank]
    print(f"Kept glyphs: {len(kept)} of {len(source.glyphs)}")
    print(f"Range: {describe_code(shrunk.first)} .. {describe_code(shrunk.last)}")

    # The emitted array carries one pad byte past the logical bitmap
    print(f"Bitmap: {len(source.bitmap):,} -> {len(shrunk.bitmap) - 1:,} bytes")

    errors = compare_fonts(source, shrunk)
    for error in errors:
        print(f"  ERROR: {error}")

    if errors:
        print(f"\nWARNING: {len(errors)} mismatches found")
        sys.exit(1)
    print("\nAll kept glyphs match the source!")


if __name__ == '__main__':
    main()

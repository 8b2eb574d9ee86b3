import re

import pytest
from PIL import ImageOps

from conftest import flip_bits, image_bytes, mosaic_image, ramp_image
from mintguard.services.errors import DecodeError, MalformedFingerprint
from mintguard.services.image_hash import (
    dhash64,
    hamming_distance,
    parse_fingerprint,
    similarity,
)

FINGERPRINT_RE = re.compile(r"^[0-9a-f]{16}$")


def test_dhash_is_deterministic(mosaic_png):
    assert dhash64(mosaic_png) == dhash64(mosaic_png)


def test_dhash_format():
    for seed in range(5):
        fp = dhash64(image_bytes(mosaic_image(seed)))
        assert FINGERPRINT_RE.match(fp)


def test_dhash_bit_order():
    # Ascending ramps never have a brighter left pixel
    assert dhash64(image_bytes(ramp_image())) == "0000000000000000"
    assert dhash64(image_bytes(ramp_image(descending_rows=range(8)))) == "ffffffffffffffff"
    # Row 0 is the most significant byte
    assert dhash64(image_bytes(ramp_image(descending_rows=[0]))) == "ff00000000000000"
    assert dhash64(image_bytes(ramp_image(descending_rows=[7]))) == "00000000000000ff"


def test_dhash_accepts_other_modes():
    rgba = mosaic_image(seed=7).convert("RGBA")
    assert FINGERPRINT_RE.match(dhash64(image_bytes(rgba)))
    palette = mosaic_image(seed=7).convert("P")
    assert FINGERPRINT_RE.match(dhash64(image_bytes(palette, fmt="GIF")))


@pytest.mark.parametrize("payload", [b"", b"not an image at all", b"\x89PNG\r\n\x1a\n\x00\x00"])
def test_dhash_rejects_undecodable_bytes(payload):
    with pytest.raises(DecodeError):
        dhash64(payload)


def test_dhash_rejects_truncated_image(mosaic_png):
    with pytest.raises(DecodeError):
        dhash64(mosaic_png[: len(mosaic_png) // 2])


def test_reencoded_image_stays_close():
    scene = mosaic_image(seed=11)
    high = dhash64(image_bytes(scene, fmt="JPEG", quality=95))
    low = dhash64(image_bytes(scene, fmt="JPEG", quality=40))
    assert hamming_distance(high, low) <= 9
    assert similarity(high, low) >= 0.86


def test_resized_image_stays_close():
    scene = mosaic_image(seed=11)
    smaller = scene.resize((scene.width // 2, scene.height // 2))
    a = dhash64(image_bytes(scene))
    b = dhash64(image_bytes(smaller, fmt="JPEG", quality=80))
    assert hamming_distance(a, b) <= 9


def test_unrelated_images_are_far_apart():
    scene = mosaic_image(seed=3)
    negative = ImageOps.invert(scene)
    a = dhash64(image_bytes(scene))
    b = dhash64(image_bytes(negative))
    assert hamming_distance(a, b) >= 24
    assert similarity(a, b) <= 0.63

    left_lit = dhash64(image_bytes(ramp_image(descending_rows=range(8))))
    right_lit = dhash64(image_bytes(ramp_image()))
    assert hamming_distance(left_lit, right_lit) >= 24


def test_independent_scenes_are_far_apart():
    distances = [
        hamming_distance(
            dhash64(image_bytes(mosaic_image(seed))),
            dhash64(image_bytes(mosaic_image(seed + 1))),
        )
        for seed in range(0, 20, 2)
    ]
    # Unrelated scenes disagree on about half of the bits
    assert sum(distances) / len(distances) >= 24
    assert min(distances) > 9


def test_parse_fingerprint():
    assert parse_fingerprint("00000000000000ff") == 255
    assert parse_fingerprint("FFFFFFFFFFFFFFFF") == 2 ** 64 - 1
    assert parse_fingerprint(" 0123456789abcdef\n") == 0x0123456789ABCDEF


@pytest.mark.parametrize("value", [
    None, 42, "", "abc", "0123456789abcde", "0123456789abcdef0",
    "0x23456789abcdef", "0123456789abcdeg", "-123456789abcdef", "+123456789abcdef",
])
def test_parse_fingerprint_rejects_malformed(value):
    with pytest.raises(MalformedFingerprint):
        parse_fingerprint(value)


def test_hamming_distance_counts_bits():
    base = "a5a5a5a5a5a5a5a5"
    assert hamming_distance(base, base) == 0
    for count in (1, 9, 24, 64):
        assert hamming_distance(base, flip_bits(base, count)) == count


def test_similarity_identity_and_range():
    base = "0f0f0f0f0f0f0f0f"
    assert similarity(base, base) == 1.0
    assert similarity(base, flip_bits(base, 64)) == 0.0
    assert similarity(base, flip_bits(base, 8)) == 0.875


@pytest.mark.parametrize("a,b", [
    ("0000000000000000", "ffffffffffffffff"),
    ("0123456789abcdef", "fedcba9876543210"),
    ("0123456789abcdef", "garbage"),
    (None, "0123456789abcdef"),
    ("", ""),
])
def test_similarity_is_symmetric(a, b):
    assert similarity(a, b) == similarity(b, a)
    assert hamming_distance(a, b) == hamming_distance(b, a)
    assert 0.0 <= similarity(a, b) <= 1.0


def test_malformed_fingerprint_scores_zero():
    good = "0123456789abcdef"
    assert hamming_distance(good, "not-a-hash") == 64
    assert similarity(good, "not-a-hash") == 0.0
    assert similarity("not-a-hash", "not-a-hash") == 0.0
    assert similarity(good, None) == 0.0

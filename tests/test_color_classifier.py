import unittest
import sys
import os

import numpy as np

# Add path to source
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pingpong_vision.detectors.color_classifier import (
    ball_color_mask,
    is_orange,
    is_white,
    orange_mask,
    rgb_to_hsv,
    white_mask,
)


class TestScalarClassifiers(unittest.TestCase):
    def test_orange_ball_color(self):
        self.assertTrue(is_orange(255, 165, 0))
        self.assertFalse(is_white(255, 165, 0))

    def test_black_is_neither(self):
        self.assertFalse(is_orange(0, 0, 0))
        self.assertFalse(is_white(0, 0, 0))

    def test_near_white(self):
        self.assertTrue(is_white(250, 250, 250))
        self.assertFalse(is_orange(250, 250, 250))

    def test_pure_red_is_neither(self):
        self.assertFalse(is_orange(255, 0, 0))
        self.assertFalse(is_white(255, 0, 0))

    def test_white_needs_low_variance(self):
        # Bright but tinted
        self.assertFalse(is_white(255, 230, 200))

    def test_dark_orange_hue_rejected_on_value(self):
        # Hue is orange but value is below 0.4
        self.assertFalse(is_orange(90, 55, 0))

    def test_achromatic_has_no_hue(self):
        self.assertIsNone(rgb_to_hsv(128, 128, 128))

    def test_hue_rounding(self):
        hue, saturation, value = rgb_to_hsv(255, 165, 0)
        self.assertEqual(hue, 39)
        self.assertAlmostEqual(saturation, 1.0)
        self.assertAlmostEqual(value, 1.0)

    def test_hue_wraps_to_positive(self):
        # Red with more blue than green lands just below 360 degrees
        hue, _, _ = rgb_to_hsv(255, 0, 30)
        self.assertGreater(hue, 300)
        self.assertLessEqual(hue, 360)


class TestVectorisedMasks(unittest.TestCase):
    def test_masks_agree_with_scalar_classifiers(self):
        rng = np.random.default_rng(7)
        pixels = rng.integers(0, 256, size=(40, 40, 3), dtype=np.uint8)
        # Make sure both classes are present
        pixels[0, :10] = (255, 165, 0)
        pixels[1, :10] = (245, 248, 250)

        orange = orange_mask(pixels)
        white = white_mask(pixels)
        for y in range(pixels.shape[0]):
            for x in range(pixels.shape[1]):
                r, g, b = (int(c) for c in pixels[y, x])
                self.assertEqual(bool(orange[y, x]), is_orange(r, g, b), (r, g, b))
                self.assertEqual(bool(white[y, x]), is_white(r, g, b), (r, g, b))

    def test_ball_color_mask_is_union(self):
        pixels = np.array([[[255, 165, 0], [250, 250, 250], [0, 0, 0], [0, 0, 255]]], dtype=np.uint8)
        np.testing.assert_array_equal(ball_color_mask(pixels), [[True, True, False, False]])

    def test_rejects_non_rgb_input(self):
        with self.assertRaises(ValueError):
            orange_mask(np.zeros((4, 4, 2), dtype=np.uint8))


if __name__ == '__main__':
    unittest.main()

import unittest

from mapstudio.scales import CategoricalScale, ColorScale, LinearScale, build_color_scale, interpolate_rgb
from mapstudio.settings import CategoricalColor, ColorBinding


class LinearScaleTests(unittest.TestCase):
    def test_endpoints_map_exactly(self):
        scale = LinearScale(domain=(0.0, 100.0), range=(5.0, 20.0))
        self.assertEqual(scale(0.0), 5.0)
        self.assertEqual(scale(100.0), 20.0)
        self.assertEqual(scale(50.0), 12.5)

    def test_out_of_domain_values_clamp(self):
        scale = LinearScale(domain=(0.0, 100.0), range=(5.0, 20.0))
        self.assertEqual(scale(-40.0), 5.0)
        self.assertEqual(scale(250.0), 20.0)

    def test_descending_domain(self):
        scale = LinearScale(domain=(100.0, 0.0), range=(20.0, 5.0))
        self.assertEqual(scale(100.0), 20.0)
        self.assertEqual(scale(0.0), 5.0)

    def test_degenerate_domain_is_flat(self):
        scale = LinearScale(domain=(10.0, 10.0), range=(5.0, 20.0))
        self.assertEqual(scale(10.0), 5.0)
        self.assertEqual(scale(3.0), 5.0)

    def test_mismatched_lengths_rejected(self):
        with self.assertRaises(ValueError):
            LinearScale(domain=(0.0, 1.0, 2.0), range=(0.0, 1.0))


class ColorScaleTests(unittest.TestCase):
    def test_midpoint_of_white_to_blue(self):
        scale = ColorScale(domain=(0.0, 100.0), colors=("white", "blue"))
        self.assertEqual(scale(50.0), "#8080ff")

    def test_endpoints_and_clamping(self):
        scale = ColorScale(domain=(0.0, 100.0), colors=("#f7fbff", "#08519c"))
        self.assertEqual(scale(0.0), "#f7fbff")
        self.assertEqual(scale(100.0), "#08519c")
        self.assertEqual(scale(-5.0), "#f7fbff")
        self.assertEqual(scale(1000.0), "#08519c")

    def test_three_stop_scale_hits_mid_color(self):
        scale = ColorScale(domain=(0.0, 50.0, 100.0), colors=("#ff0000", "#00ff00", "#0000ff"))
        self.assertEqual(scale(50.0), "#00ff00")
        self.assertEqual(scale(75.0), "#008080")

    def test_interpolation_clamps_t(self):
        self.assertEqual(interpolate_rgb("#000000", "#ffffff", 2.0), "#ffffff")
        self.assertEqual(interpolate_rgb("#000000", "#ffffff", -1.0), "#000000")


class CategoricalScaleTests(unittest.TestCase):
    def test_palette_cycles_in_order(self):
        scale = CategoricalScale(["a", "b", "c", "d", "e"], ["red", "blue"], "#cccccc")
        self.assertEqual([scale(v) for v in "abcde"], ["red", "blue", "red", "blue", "red"])

    def test_unknown_and_missing_values_use_default(self):
        scale = CategoricalScale(["a"], ["red"], "#cccccc")
        self.assertEqual(scale("zzz"), "#cccccc")
        self.assertEqual(scale(None), "#cccccc")
        self.assertEqual(scale(" a "), "red")

    def test_empty_palette(self):
        scale = CategoricalScale(["a"], [], "#cccccc")
        self.assertEqual(scale("a"), "#cccccc")


class BuildColorScaleTests(unittest.TestCase):
    def test_linear_binding_without_mid(self):
        binding = ColorBinding(color_by="v", min_color="#000000", mid_color="", max_color="#ffffff")
        scale = build_color_scale(binding, unique_values=[], fallback_color="#123456")
        self.assertIsInstance(scale, ColorScale)
        self.assertEqual(scale.domain, (0.0, 100.0))

    def test_linear_binding_with_mid(self):
        scale = build_color_scale(ColorBinding(color_by="v"), unique_values=[], fallback_color="#123456")
        self.assertEqual(len(scale.domain), 3)

    def test_categorical_binding(self):
        binding = ColorBinding(
            color_by="kind",
            scale="categorical",
            categorical_colors=(CategoricalColor("x", "#ff0000"), CategoricalColor("y", "#00ff00")),
        )
        scale = build_color_scale(binding, unique_values=["p", "q", "r"], fallback_color="#123456")
        self.assertIsInstance(scale, CategoricalScale)
        self.assertEqual(scale("r"), "#ff0000")


if __name__ == "__main__":
    unittest.main()
